from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter(trailing_slash=False)
router.register(r"admin/analytics", views.AdminAnalyticsViewSet, basename="admin-analytics")
router.register(r"store-owner/analytics", views.StoreAnalyticsViewSet, basename="store-analytics")

urlpatterns = router.urls
