from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter(trailing_slash=False)
router.register(r"customer/orders", views.CustomerOrderViewSet, basename="customer-orders")
router.register(r"orders", views.OrderViewSet, basename="orders")
router.register(r"store-owner/orders", views.StoreOrderViewSet, basename="store-orders")
router.register(r"admin/orders", views.AdminOrderViewSet, basename="admin-orders")
router.register(r"admin/fraud-signals", views.AdminFraudSignalViewSet, basename="admin-fraud-signals")

urlpatterns = router.urls
