# orders/views.py
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from apps.payments.serializers import AdminPaymentSerializer
from common.permissions import IsAdmin, IsAdminOrDelivery, IsCustomer, IsStoreOwner
from common.principal import principal_from
from common.responses import success

from . import services
from .models import FraudSignal
from .serializers import (
    AdminOrderSerializer,
    CartCheckoutSerializer,
    FraudSignalSerializer,
    OrderCancelSerializer,
    OrderCreateSerializer,
    OrderSerializer,
    OrderStatusSerializer,
)


# ---------------------------------------------------------------------
# Customer
# ---------------------------------------------------------------------
class CustomerOrderViewSet(viewsets.GenericViewSet):
    serializer_class = OrderSerializer
    permission_classes = [IsCustomer]

    def get_queryset(self):
        return services.customer_orders(principal_from(self.request))

    @extend_schema(summary="My orders", tags=["Orders"])
    def list(self, request):
        qs = services.customer_orders(principal_from(request), status=request.query_params.get("status"))
        page = self.paginate_queryset(qs)
        return self.get_paginated_response(self.get_serializer(page, many=True).data)

    @extend_schema(summary="Place an order", request=OrderCreateSerializer, tags=["Orders"])
    def create(self, request):
        data = OrderCreateSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        params = data.validated_data
        order = services.create_order(
            actor=principal_from(request),
            items=params["items"],
            delivery_address=params["delivery_address"],
            promo_code=params.get("promo_code") or None,
        )
        return success(OrderSerializer(order).data, message="Order placed successfully", status=status.HTTP_201_CREATED)

    @extend_schema(summary="Place an order from my cart", request=CartCheckoutSerializer, tags=["Orders"])
    @action(detail=False, methods=["post"], url_path="from-cart")
    def from_cart(self, request):
        data = CartCheckoutSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        order = services.create_order_from_cart(
            actor=principal_from(request), delivery_address=data.validated_data["delivery_address"],
        )
        return success(OrderSerializer(order).data, message="Order placed successfully", status=status.HTTP_201_CREATED)


class OrderViewSet(viewsets.GenericViewSet):
    """Single-order endpoints shared by every role that can see an order."""
    serializer_class = OrderSerializer

    def get_permissions(self):
        if self.action == "cancel":
            return [IsCustomer()]
        if self.action == "set_status":
            return [IsAdminOrDelivery()]
        return [IsAuthenticated()]

    def get_queryset(self):
        return services.customer_orders(principal_from(self.request))

    @extend_schema(summary="Order detail", tags=["Orders"])
    def retrieve(self, request, pk=None):
        return success(OrderSerializer(services.get_order_for(principal_from(request), pk)).data)

    @extend_schema(summary="Cancel my order", request=OrderCancelSerializer, tags=["Orders"])
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        data = OrderCancelSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        order = services.cancel_order(actor=principal_from(request), order_id=pk, **data.validated_data)
        return success(OrderSerializer(order).data, message="Order cancelled")

    @extend_schema(summary="Update order status", request=OrderStatusSerializer, tags=["Orders"])
    @action(detail=True, methods=["put"], url_path="status")
    def set_status(self, request, pk=None):
        data = OrderStatusSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        order = services.transition_order(
            actor=principal_from(request), order_id=pk, store_scoped=False, **data.validated_data,
        )
        return success(OrderSerializer(order).data, message=f"Order status updated to {order.status}")


# ---------------------------------------------------------------------
# Store owner
# ---------------------------------------------------------------------
class StoreOrderViewSet(viewsets.GenericViewSet):
    serializer_class = OrderSerializer
    permission_classes = [IsStoreOwner]

    def get_queryset(self):
        return services.store_orders(principal_from(self.request))

    @extend_schema(summary="Orders for my stores", tags=["Store Owner: Orders"])
    def list(self, request):
        qs = services.store_orders(
            principal_from(request),
            status=request.query_params.get("status"),
            store_id=request.query_params.get("store_id"),
        )
        page = self.paginate_queryset(qs)
        return self.get_paginated_response(self.get_serializer(page, many=True).data)

    @extend_schema(summary="Accept, reject or advance an order", request=OrderStatusSerializer, tags=["Store Owner: Orders"])
    @action(detail=True, methods=["patch"], url_path="status")
    def set_status(self, request, pk=None):
        data = OrderStatusSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        order = services.transition_order(actor=principal_from(request), order_id=pk, **data.validated_data)
        return success(OrderSerializer(order).data, message=f"Order status updated to {order.status}")


# ---------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------
@extend_schema_view(
    list=extend_schema(summary="All orders", tags=["Admin: Orders"]),
    retrieve=extend_schema(tags=["Admin: Orders"]),
)
class AdminOrderViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    serializer_class = AdminOrderSerializer
    permission_classes = [IsAdmin]
    filterset_fields = ("status", "store", "customer")
    ordering_fields = ("created_at", "final_price")

    def get_queryset(self):
        return services.all_orders()

    def retrieve(self, request, *args, **kwargs):
        return success(self.get_serializer(services.get_order_for(principal_from(request), kwargs["pk"])).data)

    @extend_schema(summary="Force-cancel an order and refund it", request=OrderCancelSerializer, tags=["Admin: Orders"])
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        data = OrderCancelSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        order, payment = services.admin_cancel_order(actor=principal_from(request), order_id=pk, **data.validated_data)
        payload = {
            "order": self.get_serializer(order).data,
            "refunded_payment": AdminPaymentSerializer(payment).data if payment else None,
        }
        return success(payload, message="Order cancelled by admin")


@extend_schema_view(list=extend_schema(summary="Raised fraud signals", tags=["Admin: Orders"]))
class AdminFraudSignalViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    queryset = FraudSignal.objects.select_related("user").order_by("-created_at")
    serializer_class = FraudSignalSerializer
    permission_classes = [IsAdmin]
    filterset_fields = ("severity", "rule", "processed", "user")

    @extend_schema(summary="Mark a signal as reviewed", request=None, tags=["Admin: Orders"])
    @action(detail=True, methods=["post"])
    def processed(self, request, pk=None):
        signal = self.get_object()
        signal.processed = True
        signal.save(update_fields=["processed", "updated_at"])
        return success(self.get_serializer(signal).data)
