"""
Cart endpoints for signed-in customers and anonymous visitors.

Guests are identified by the `cart_session` cookie, which is issued on first
use and lives as long as the cached cart.
"""
from django.conf import settings
from drf_spectacular.utils import extend_schema
from rest_framework import permissions
from rest_framework.views import APIView

from apps.accounts.models import Role
from common.exceptions import InvalidRequest
from common.permissions import IsCustomer
from common.responses import success

from . import services
from .serializers import CartItemInputSerializer, DiscountCodeSerializer
from .storage import SESSION_COOKIE, new_session_id


class IsCustomerOrGuest(permissions.BasePermission):
    message = "Only customers can use the cart"

    def has_permission(self, request, view):
        user = request.user
        return not user.is_authenticated or user.role == Role.CUSTOMER


class CartAPIView(APIView):
    permission_classes = [IsCustomerOrGuest]

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        self.new_session = None
        if request.user.is_authenticated:
            self.backend = services.backend_for(user_id=request.user.pk)
        else:
            session_id = request.COOKIES.get(SESSION_COOKIE)
            if not session_id:
                session_id = self.new_session = new_session_id()
            self.backend = services.backend_for(session_id=session_id)

    def finalize_response(self, request, response, *args, **kwargs):
        response = super().finalize_response(request, response, *args, **kwargs)
        if getattr(self, "new_session", None):
            response.set_cookie(
                SESSION_COOKIE,
                self.new_session,
                max_age=settings.MARKETPLACE_GUEST_CART_TTL,
                httponly=True,
                secure=not settings.DEBUG,
                samesite="Lax",
            )
        return response

    def cart_response(self, state, message=None, **extra):
        return success(services.summarize(state), message=message, **extra)


class CartDetailView(CartAPIView):
    @extend_schema(summary="Current cart with totals", tags=["Cart"])
    def get(self, request):
        return self.cart_response(services.get_cart(self.backend))


class CartAddView(CartAPIView):
    @extend_schema(summary="Add an item", request=CartItemInputSerializer, tags=["Cart"])
    def post(self, request):
        data = CartItemInputSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        state = services.add_item(self.backend, **data.validated_data)
        return self.cart_response(state, message="Item added to cart")


class CartUpdateView(CartAPIView):
    @extend_schema(summary="Change an item's quantity", request=CartItemInputSerializer, tags=["Cart"])
    def patch(self, request, item_id=None):
        payload = dict(request.data.items())
        if item_id:
            payload["menu_item_id"] = item_id
        data = CartItemInputSerializer(data=payload)
        data.is_valid(raise_exception=True)
        state = services.update_quantity(self.backend, **data.validated_data)
        return self.cart_response(state, message="Quantity updated")


class CartRemoveView(CartAPIView):
    @extend_schema(summary="Remove an item", tags=["Cart"])
    def delete(self, request, item_id=None):
        menu_item_id = item_id or request.data.get("menu_item_id")
        if not menu_item_id:
            raise InvalidRequest("menu_item_id is required")
        state = services.remove_item(self.backend, menu_item_id=menu_item_id)
        return self.cart_response(state, message="Item removed")


class CartClearView(CartAPIView):
    @extend_schema(summary="Empty the cart", tags=["Cart"])
    def delete(self, request):
        services.clear_cart(self.backend)
        return self.cart_response(services.get_cart(self.backend), message="Cart cleared")


class CartMergeView(CartAPIView):
    permission_classes = [IsCustomer]

    @extend_schema(summary="Merge the guest cart into the signed-in cart", request=None, tags=["Cart"])
    def post(self, request):
        session_id = request.COOKIES.get(SESSION_COOKIE)
        if not session_id:
            return self.cart_response(services.get_cart(self.backend), message="No session cart to merge")
        state = services.merge_guest_cart(user_id=request.user.pk, session_id=session_id)
        response = self.cart_response(state, message="Cart merged successfully")
        response.delete_cookie(SESSION_COOKIE)
        return response


class CartApplyDiscountView(CartAPIView):
    permission_classes = [IsCustomer]

    @extend_schema(summary="Attach a promotion code", request=DiscountCodeSerializer, tags=["Cart"])
    def post(self, request):
        data = DiscountCodeSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        state = services.apply_discount(self.backend, code=data.validated_data["code"])
        return self.cart_response(state, message=f"Discount applied: ₹{state.discount_amount} off")


class CartRemoveDiscountView(CartAPIView):
    permission_classes = [IsCustomer]

    @extend_schema(summary="Detach the promotion code", tags=["Cart"])
    def delete(self, request):
        return self.cart_response(services.remove_discount(self.backend), message="Discount removed successfully")


class CartStatusView(CartAPIView):
    permission_classes = [IsCustomer]

    @extend_schema(summary="Report items that can no longer be ordered", tags=["Cart"])
    def get(self, request):
        return success(services.cart_status(self.backend))


class CartCleanView(CartAPIView):
    permission_classes = [IsCustomer]

    @extend_schema(summary="Drop items that can no longer be ordered", request=None, tags=["Cart"])
    def post(self, request):
        state, removed = services.clean_cart(self.backend)
        message = (
            f"Cart cleaned! {len(removed)} unavailable item(s) removed."
            if removed else "No invalid items found in cart."
        )
        return self.cart_response(state, message=message, removed_items=removed)
