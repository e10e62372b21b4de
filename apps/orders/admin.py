from django.contrib import admin

from .models import FraudSignal, Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("menu_item", "item_name", "quantity", "unit_price")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "customer", "store", "final_price", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("id", "customer__email", "store__store_name", "promo_code")
    readonly_fields = ("subtotal", "discount", "final_price", "fraud_flags", "created_at", "updated_at")
    raw_id_fields = ("customer", "store")
    inlines = [OrderItemInline]


@admin.register(FraudSignal)
class FraudSignalAdmin(admin.ModelAdmin):
    list_display = ("rule", "severity", "score", "user", "entity_id", "processed", "created_at")
    list_filter = ("severity", "rule", "processed")
    search_fields = ("user__email", "rule")
    raw_id_fields = ("user",)
