from django.urls import path
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter(trailing_slash=False)
router.register(r"reviews", views.ReviewViewSet, basename="reviews")
router.register(r"admin/reviews", views.AdminReviewViewSet, basename="admin-reviews")

urlpatterns = [
    path("reviews/store/<uuid:store_id>", views.StoreReviewListView.as_view(), name="store-reviews"),
] + router.urls
