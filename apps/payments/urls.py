from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter(trailing_slash=False)
router.register(r"payments", views.PaymentViewSet, basename="payments")
router.register(r"store-owner/payments", views.StorePaymentViewSet, basename="store-payments")
router.register(r"store-owner/payouts", views.OwnerPayoutViewSet, basename="owner-payouts")
router.register(r"admin/payments", views.AdminPaymentViewSet, basename="admin-payments")
router.register(r"admin/payouts", views.AdminPayoutViewSet, basename="admin-payouts")

urlpatterns = router.urls
