from django.contrib import admin

from .models import AuditLog, User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ("id", "email", "name", "role", "status", "is_staff", "created_at")
    search_fields = ("email", "name", "phone")
    readonly_fields = ("created_at", "updated_at", "last_login")
    list_filter = ("role", "status", "is_staff")
    ordering = ("-created_at",)
    actions = ["suspend_users", "reactivate_users"]

    def suspend_users(self, request, queryset):
        for user in queryset:
            user.suspend(reason="Suspended from admin site")
            AuditLog.log(request.user, "user.suspend", {"user_id": str(user.id)})
        self.message_user(request, f"Suspended {queryset.count()} users.")
    suspend_users.short_description = "Suspend selected users"

    def reactivate_users(self, request, queryset):
        for user in queryset:
            user.reactivate()
        self.message_user(request, f"Reactivated {queryset.count()} users.")
    reactivate_users.short_description = "Reactivate selected users"


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("action", "actor_id", "created_at")
    search_fields = ("action",)
    readonly_fields = ("actor_id", "action", "meta", "created_at")
