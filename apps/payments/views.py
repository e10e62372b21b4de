# payments/views.py
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from common.permissions import IsAdmin, IsCustomerOrAdmin, IsStoreOwner
from common.principal import principal_from
from common.responses import success

from . import services
from .serializers import (
    AdminPaymentSerializer,
    EarlyPayoutSerializer,
    PaymentCreateSerializer,
    PaymentSerializer,
    PaymentStatusSerializer,
    PayoutCompleteSerializer,
    PayoutFailSerializer,
    PayoutGenerateSerializer,
    PayoutSerializer,
    RefundSerializer,
    StatementQuerySerializer,
)


def _totals_as_strings(totals: dict) -> dict:
    return {k: (v if isinstance(v, int) else str(v)) for k, v in totals.items()}


# ---------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------
class PaymentViewSet(viewsets.GenericViewSet):
    serializer_class = PaymentSerializer

    def get_permissions(self):
        if self.action == "create":
            return [IsCustomerOrAdmin()]
        if self.action in ("set_status", "refund"):
            return [IsAdmin()]
        return [IsAuthenticated()]

    def get_queryset(self):
        return services.user_payments(principal_from(self.request))

    @extend_schema(summary="Create the payment for an order", request=PaymentCreateSerializer, tags=["Payments"])
    def create(self, request):
        data = PaymentCreateSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        payment = services.create_payment(actor=principal_from(request), **data.validated_data)
        return success(PaymentSerializer(payment).data, message="Payment created", status=status.HTTP_201_CREATED)

    @extend_schema(summary="Payment detail", tags=["Payments"])
    def retrieve(self, request, pk=None):
        payment = services.get_payment_for(principal_from(request), pk)
        return success(PaymentSerializer(payment).data)

    @extend_schema(summary="My payments", tags=["Payments"])
    @action(detail=False, methods=["get"], url_path="my-payments")
    def my_payments(self, request):
        qs = services.user_payments(principal_from(request), status=request.query_params.get("status"))
        page = self.paginate_queryset(qs)
        return self.get_paginated_response(self.get_serializer(page, many=True).data)

    @extend_schema(summary="Update payment status", request=PaymentStatusSerializer, tags=["Admin: Payments"])
    @action(detail=True, methods=["patch"], url_path="status")
    def set_status(self, request, pk=None):
        data = PaymentStatusSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        payment = services.update_payment_status(actor=principal_from(request), payment_id=pk, **data.validated_data)
        return success(AdminPaymentSerializer(payment).data, message="Payment status updated")

    @extend_schema(summary="Refund a completed payment", request=RefundSerializer, tags=["Admin: Payments"])
    @action(detail=True, methods=["post"])
    def refund(self, request, pk=None):
        data = RefundSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        payment = services.refund_payment(actor=principal_from(request), payment_id=pk, **data.validated_data)
        return success(AdminPaymentSerializer(payment).data, message="Refund processed successfully")


class StorePaymentViewSet(viewsets.GenericViewSet):
    serializer_class = PaymentSerializer
    permission_classes = [IsStoreOwner]

    def get_queryset(self):
        return services.store_payments(principal_from(self.request))

    @extend_schema(summary="Payments received by my stores", tags=["Store Owner: Payments"])
    def list(self, request):
        params = request.query_params
        qs = services.store_payments(
            principal_from(request),
            status=params.get("status"),
            payout_status=params.get("payout_status"),
            store_id=params.get("store_id"),
        )
        page = self.paginate_queryset(qs)
        data = self.get_serializer(page, many=True).data
        return self.paginator.get_paginated_response(data, extra={"summary": _totals_as_strings(services.totals_for(qs))})

    @extend_schema(summary="Payments eligible for the next payout", tags=["Store Owner: Payments"])
    @action(detail=False, methods=["get"])
    def eligible(self, request):
        result = services.eligible_summary(principal_from(request), request.query_params.get("store_id"))
        return success({
            "payments": self.get_serializer(result["payments"], many=True).data,
            "summary": _totals_as_strings(result["summary"]),
        })


@extend_schema_view(
    list=extend_schema(summary="All payments", tags=["Admin: Payments"]),
    retrieve=extend_schema(tags=["Admin: Payments"]),
)
class AdminPaymentViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    serializer_class = AdminPaymentSerializer
    permission_classes = [IsAdmin]
    filterset_fields = ("status", "payout_status", "payment_method", "store", "user")

    def get_queryset(self):
        return services.all_payments()

    def retrieve(self, request, *args, **kwargs):
        return success(self.get_serializer(services.get_payment(kwargs["pk"])).data)


# ---------------------------------------------------------------------
# Payouts
# ---------------------------------------------------------------------
class OwnerPayoutViewSet(viewsets.GenericViewSet):
    serializer_class = PayoutSerializer
    permission_classes = [IsStoreOwner]

    def get_queryset(self):
        return services.owner_payouts(principal_from(self.request))

    @extend_schema(summary="My payouts", tags=["Store Owner: Payouts"])
    def list(self, request):
        actor = principal_from(request)
        qs = services.owner_payouts(actor, status=request.query_params.get("status"))
        page = self.paginate_queryset(qs)
        data = self.get_serializer(page, many=True).data
        summary = _totals_as_strings(services.owner_payout_summary(actor))
        return self.paginator.get_paginated_response(data, extra={"summary": summary})

    @extend_schema(summary="Payout detail", tags=["Store Owner: Payouts"])
    def retrieve(self, request, pk=None):
        return success(self.get_serializer(services.get_payout_for(principal_from(request), pk)).data)

    @extend_schema(summary="Request an early payout", request=EarlyPayoutSerializer, tags=["Store Owner: Payouts"])
    @action(detail=False, methods=["post"], url_path="request")
    def request_early(self, request):
        data = EarlyPayoutSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        payout = services.request_early_payout(actor=principal_from(request), **data.validated_data)
        return success(
            self.get_serializer(payout).data,
            message="Early payout request submitted. Waiting for admin approval.",
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(summary="Earnings statement", parameters=[StatementQuerySerializer], tags=["Store Owner: Payouts"])
    @action(detail=False, methods=["get"])
    def statement(self, request):
        query = StatementQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        result = services.earnings_statement(principal_from(request), **query.validated_data)
        return success({
            "payments": PaymentSerializer(result["payments"], many=True).data,
            "summary": _totals_as_strings(result["summary"]),
            "period": query.data,
        })


@extend_schema_view(
    list=extend_schema(summary="All payouts", tags=["Admin: Payouts"]),
    retrieve=extend_schema(tags=["Admin: Payouts"]),
)
class AdminPayoutViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    serializer_class = PayoutSerializer
    permission_classes = [IsAdmin]
    filterset_fields = ("status", "store", "owner")

    def get_queryset(self):
        return services.all_payouts().prefetch_related("payments")

    def retrieve(self, request, *args, **kwargs):
        return success(self.get_serializer(services.get_payout_for(principal_from(request), kwargs["pk"])).data)

    @extend_schema(summary="Generate a payout for a store and period", request=PayoutGenerateSerializer, tags=["Admin: Payouts"])
    @action(detail=False, methods=["post"])
    def generate(self, request):
        data = PayoutGenerateSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        payout = services.generate_payout(actor=principal_from(request), **data.validated_data)
        return success(self.get_serializer(payout).data, message="Payout generated", status=status.HTTP_201_CREATED)

    @extend_schema(summary="Approve a pending payout", request=None, tags=["Admin: Payouts"])
    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        payout = services.approve_payout(actor=principal_from(request), payout_id=pk)
        return success(self.get_serializer(payout).data, message="Payout approved")

    @extend_schema(summary="Mark an approved payout as transferred", request=PayoutCompleteSerializer, tags=["Admin: Payouts"])
    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        data = PayoutCompleteSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        payout = services.complete_payout(actor=principal_from(request), payout_id=pk, **data.validated_data)
        return success(self.get_serializer(payout).data, message="Payout completed")

    @extend_schema(summary="Mark a payout as failed", request=PayoutFailSerializer, tags=["Admin: Payouts"])
    @action(detail=True, methods=["post"])
    def fail(self, request, pk=None):
        data = PayoutFailSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        payout = services.fail_payout(actor=principal_from(request), payout_id=pk, **data.validated_data)
        return success(self.get_serializer(payout).data, message="Payout marked as failed")
