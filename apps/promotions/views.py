from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.views import APIView

from common.permissions import IsAdmin, IsCustomer
from common.principal import principal_from
from common.responses import success

from . import services
from .models import Promotion
from .serializers import (
    PromotionCheckSerializer,
    PromotionSerializer,
    PromotionUpdateSerializer,
    PublicPromotionSerializer,
)


class ValidatePromotionView(APIView):
    """Dry-run a code against an order amount. Always 200; `valid` tells the outcome."""
    permission_classes = [AllowAny]

    @extend_schema(summary="Validate a promotion code", request=PromotionCheckSerializer, tags=["Promotions"])
    def post(self, request):
        data = PromotionCheckSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        params = data.validated_data
        user_id = request.user.pk if request.user.is_authenticated else None

        promotion, eligibility, discount = services.validate_code(
            params["code"],
            user_id=user_id,
            order_amount=params["order_amount"],
            store_id=params.get("store_id"),
            categories=params["categories"],
            item_ids=params["item_ids"],
        )
        if not eligibility.valid:
            return success({"valid": False, "reason": eligibility.reason})
        return success({
            "valid": True,
            "promotion": PublicPromotionSerializer(promotion).data,
            "discount": str(discount),
            "final_amount": str(max(params["order_amount"] - discount, 0)),
        })


class ApplyPromotionView(APIView):
    permission_classes = [IsCustomer]

    @extend_schema(summary="Redeem a promotion code", request=PromotionCheckSerializer, tags=["Promotions"])
    def post(self, request):
        data = PromotionCheckSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        params = data.validated_data
        promotion, discount, usage = services.redeem(
            params["code"],
            user_id=principal_from(request).user_id,
            order_amount=params["order_amount"],
            store_id=params.get("store_id"),
            categories=params["categories"],
            item_ids=params["item_ids"],
        )
        return success(
            {
                "code": promotion.code,
                "discount": str(discount),
                "final_amount": str(max(params["order_amount"] - discount, 0)),
                "usage_id": str(usage.id),
            },
            message="Promotion applied successfully",
        )


class ActivePromotionsView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(summary="Currently active promotions", tags=["Promotions"])
    def get(self, request):
        promotions = services.active_promotions(
            city=request.query_params.get("city"),
            store_id=request.query_params.get("store_id"),
        )
        return success(PublicPromotionSerializer(promotions, many=True).data)


@extend_schema_view(
    list=extend_schema(summary="All promotions", tags=["Admin: Promotions"]),
    create=extend_schema(summary="Create promotion", tags=["Admin: Promotions"]),
    retrieve=extend_schema(tags=["Admin: Promotions"]),
    partial_update=extend_schema(tags=["Admin: Promotions"]),
    destroy=extend_schema(tags=["Admin: Promotions"]),
)
class AdminPromotionViewSet(viewsets.ModelViewSet):
    queryset = Promotion.objects.filter(is_deleted=False).prefetch_related("stores")
    serializer_class = PromotionSerializer
    permission_classes = [IsAdmin]
    http_method_names = ["get", "post", "patch", "delete"]
    filterset_fields = ("type", "is_active", "applicable_to")
    search_fields = ("code", "name")

    def get_serializer_class(self):
        if self.action == "partial_update":
            return PromotionUpdateSerializer
        return PromotionSerializer

    def retrieve(self, request, *args, **kwargs):
        return success(self.get_serializer(services.get_promotion(kwargs["pk"])).data)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        promotion = services.create_promotion(actor=principal_from(request), **serializer.validated_data)
        return success(
            PromotionSerializer(promotion).data,
            message="Promotion created successfully",
            status=status.HTTP_201_CREATED,
        )

    def partial_update(self, request, *args, **kwargs):
        promotion = services.get_promotion(kwargs["pk"])
        serializer = self.get_serializer(promotion, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        promotion = services.update_promotion(
            actor=principal_from(request), promotion_id=promotion.pk, **serializer.validated_data,
        )
        return success(PromotionSerializer(promotion).data, message="Promotion updated")

    def destroy(self, request, *args, **kwargs):
        services.delete_promotion(actor=principal_from(request), promotion_id=kwargs["pk"])
        return success(message="Promotion deleted")

    @extend_schema(summary="Activate/deactivate", request=None, tags=["Admin: Promotions"])
    @action(detail=True, methods=["patch"])
    def toggle(self, request, pk=None):
        promotion = services.toggle_promotion(actor=principal_from(request), promotion_id=pk)
        state = "activated" if promotion.is_active else "deactivated"
        return success(PromotionSerializer(promotion).data, message=f"Promotion {state}")

    @extend_schema(summary="Usage statistics", tags=["Admin: Promotions"])
    @action(detail=True, methods=["get"])
    def stats(self, request, pk=None):
        return success(services.promotion_stats(services.get_promotion(pk)))
