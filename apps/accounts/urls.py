from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import AdminUserViewSet, AuditLogViewSet, LoginView, MeView, RegisterView

router = DefaultRouter(trailing_slash=False)
router.register(r"admin/users", AdminUserViewSet, basename="admin-users")
router.register(r"admin/audit-logs", AuditLogViewSet, basename="admin-audit-logs")

urlpatterns = [
    path("auth/register", RegisterView.as_view(), name="auth-register"),
    path("auth/login", LoginView.as_view(), name="auth-login"),
    path("auth/me", MeView.as_view(), name="auth-me"),
    path("", include(router.urls)),
]
