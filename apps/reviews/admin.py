from django.contrib import admin

from .models import Review, ReviewReport


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ("id", "store", "user", "store_rating", "status", "helpful_count", "created_at")
    list_filter = ("status", "store_rating")
    search_fields = ("store__store_name", "user__email", "store_comment")
    raw_id_fields = ("order", "user", "store", "moderated_by", "responded_by")
    filter_horizontal = ("helpful_users",)


@admin.register(ReviewReport)
class ReviewReportAdmin(admin.ModelAdmin):
    list_display = ("review", "user", "reason", "created_at")
    list_filter = ("reason",)
    raw_id_fields = ("review", "user")
