from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter(trailing_slash=False)
router.register(r"disputes", views.DisputeViewSet, basename="disputes")
router.register(r"admin/disputes", views.AdminDisputeViewSet, basename="admin-disputes")

urlpatterns = router.urls
