from django.contrib import admin

from .models import Payment, Payout


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("id", "order", "store", "amount", "commission_amount", "store_payout_amount", "status", "payout_status", "created_at")
    list_filter = ("status", "payout_status", "payment_method", "payment_gateway")
    search_fields = ("transaction_id", "gateway_order_id", "user__email", "store__store_name")
    readonly_fields = ("commission_amount", "store_payout_amount", "created_at", "updated_at")
    raw_id_fields = ("order", "user", "store")


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    list_display = ("id", "store", "total_amount", "commission_deducted", "net_payout_amount", "order_count", "status", "period_end")
    list_filter = ("status", "transfer_method")
    search_fields = ("store__store_name", "owner__email", "transfer_id")
    readonly_fields = ("total_amount", "commission_deducted", "net_payout_amount", "order_count", "processed_at")
    raw_id_fields = ("store", "owner", "processed_by")
    filter_horizontal = ("payments",)
