from django.contrib import admin

from .models import Cart, CartItem


class CartItemInline(admin.TabularInline):
    model = CartItem
    fields = ("menu_item", "item_name", "unit_price", "quantity")
    raw_id_fields = ("menu_item",)
    extra = 0


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ("user", "store", "promo_code", "discount_amount", "updated_at")
    search_fields = ("user__email",)
    raw_id_fields = ("user", "store")
    inlines = (CartItemInline,)
