from django.contrib import admin

from .models import Dispute, DisputeEvent


class DisputeEventInline(admin.TabularInline):
    model = DisputeEvent
    extra = 0
    readonly_fields = ("action", "performed_by", "notes", "created_at")


@admin.register(Dispute)
class DisputeAdmin(admin.ModelAdmin):
    list_display = ("id", "title", "type", "status", "priority", "store", "user", "created_at")
    list_filter = ("status", "priority", "type")
    search_fields = ("title", "user__email", "store__store_name")
    raw_id_fields = ("order", "user", "store", "resolved_by")
    inlines = [DisputeEventInline]
