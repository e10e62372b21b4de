from django.urls import path
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter(trailing_slash=False)
router.register(r"admin/promotions", views.AdminPromotionViewSet, basename="admin-promotions")

urlpatterns = [
    path("promotions/validate", views.ValidatePromotionView.as_view(), name="promotion-validate"),
    path("promotions/apply", views.ApplyPromotionView.as_view(), name="promotion-apply"),
    path("promotions/active", views.ActivePromotionsView.as_view(), name="promotion-active"),
] + router.urls
