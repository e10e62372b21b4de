from django.contrib import admin

from .models import MenuItem, Store


class MenuItemInline(admin.TabularInline):
    model = MenuItem
    fields = ("name", "price", "category", "is_available", "in_stock", "stock_quantity")
    extra = 0
    show_change_link = True


@admin.register(Store)
class StoreAdmin(admin.ModelAdmin):
    list_display = ("store_name", "owner", "category", "status", "is_verified", "commission_rate", "created_at")
    list_filter = ("status", "category", "is_verified", "available")
    search_fields = ("store_name", "license_number", "owner__email")
    readonly_fields = ("rating", "total_reviews", "times_ordered", "created_at", "updated_at")
    inlines = (MenuItemInline,)


@admin.register(MenuItem)
class MenuItemAdmin(admin.ModelAdmin):
    list_display = ("name", "store", "price", "category", "is_available", "in_stock", "times_ordered")
    list_filter = ("category", "food_type", "is_available", "disabled_by_admin")
    search_fields = ("name", "store__store_name")
