from django.urls import path

from . import views

urlpatterns = [
    path("cart", views.CartDetailView.as_view(), name="cart"),
    path("cart/add", views.CartAddView.as_view(), name="cart-add"),
    path("cart/update", views.CartUpdateView.as_view(), name="cart-update"),
    path("cart/update/<uuid:item_id>", views.CartUpdateView.as_view(), name="cart-update-item"),
    path("cart/remove", views.CartRemoveView.as_view(), name="cart-remove"),
    path("cart/remove/<uuid:item_id>", views.CartRemoveView.as_view(), name="cart-remove-item"),
    path("cart/clear", views.CartClearView.as_view(), name="cart-clear"),
    path("cart/merge", views.CartMergeView.as_view(), name="cart-merge"),
    path("cart/apply-discount", views.CartApplyDiscountView.as_view(), name="cart-apply-discount"),
    path("cart/remove-discount", views.CartRemoveDiscountView.as_view(), name="cart-remove-discount"),
    path("cart/status", views.CartStatusView.as_view(), name="cart-status"),
    path("cart/clean", views.CartCleanView.as_view(), name="cart-clean"),
]
