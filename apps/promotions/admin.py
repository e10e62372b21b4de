from django.contrib import admin

from .models import Promotion, PromotionUsage


@admin.register(Promotion)
class PromotionAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "type", "discount_value", "used_count", "max_uses", "is_active", "valid_until")
    list_filter = ("type", "applicable_to", "is_active")
    search_fields = ("code", "name")
    readonly_fields = ("used_count", "created_at", "updated_at")
    filter_horizontal = ("stores",)


@admin.register(PromotionUsage)
class PromotionUsageAdmin(admin.ModelAdmin):
    list_display = ("promotion", "user", "order", "discount_applied", "used_at")
    search_fields = ("promotion__code", "user__email")
    raw_id_fields = ("promotion", "user", "order")
