# reviews/views.py
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.generics import ListAPIView
from rest_framework.permissions import AllowAny, IsAuthenticated

from common.permissions import IsAdmin, IsCustomer, IsStoreOwner
from common.principal import principal_from
from common.responses import success

from . import services
from .serializers import (
    AdminReviewSerializer,
    ModerationSerializer,
    ReportSerializer,
    ReviewCreateSerializer,
    ReviewSerializer,
    ReviewUpdateSerializer,
    StoreResponseSerializer,
)


class StoreReviewListView(ListAPIView):
    """Active reviews of a store. `sort` is newest, oldest, highest, lowest or helpful."""
    serializer_class = ReviewSerializer
    permission_classes = [AllowAny]
    filter_backends = []

    def get_queryset(self):
        return services.store_reviews(self.kwargs["store_id"], sort=self.request.query_params.get("sort", "newest"))

    @extend_schema(summary="Reviews of a store", tags=["Reviews"])
    def get(self, request, *args, **kwargs):
        page = self.paginate_queryset(self.get_queryset())
        data = self.get_serializer(page, many=True).data
        return self.paginator.get_paginated_response(data, extra={"summary": services.review_summary(kwargs["store_id"])})


class ReviewViewSet(viewsets.GenericViewSet):
    serializer_class = ReviewSerializer

    def get_permissions(self):
        if self.action in ("create", "partial_update", "my_reviews"):
            return [IsCustomer()]
        if self.action == "respond":
            return [IsStoreOwner()]
        return [IsAuthenticated()]

    def get_queryset(self):
        return services.user_reviews(principal_from(self.request))

    @extend_schema(summary="Review a delivered order", request=ReviewCreateSerializer, tags=["Reviews"])
    def create(self, request):
        data = ReviewCreateSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        review = services.create_review(actor=principal_from(request), **data.validated_data)
        return success(ReviewSerializer(review).data, message="Review created successfully", status=status.HTTP_201_CREATED)

    @extend_schema(summary="Review detail", tags=["Reviews"])
    def retrieve(self, request, pk=None):
        return success(ReviewSerializer(services.get_review(pk)).data)

    @extend_schema(summary="Edit my review", request=ReviewUpdateSerializer, tags=["Reviews"])
    def partial_update(self, request, pk=None):
        data = ReviewUpdateSerializer(data=request.data, partial=True)
        data.is_valid(raise_exception=True)
        review = services.update_review(actor=principal_from(request), review_id=pk, **data.validated_data)
        return success(ReviewSerializer(review).data, message="Review updated successfully")

    @extend_schema(summary="My reviews", tags=["Reviews"])
    @action(detail=False, methods=["get"], url_path="my-reviews")
    def my_reviews(self, request):
        page = self.paginate_queryset(services.user_reviews(principal_from(request)))
        return self.get_paginated_response(self.get_serializer(page, many=True).data)

    @extend_schema(summary="Mark as helpful", request=None, tags=["Reviews"])
    @action(detail=True, methods=["post"])
    def helpful(self, request, pk=None):
        review = services.mark_helpful(actor=principal_from(request), review_id=pk)
        return success(ReviewSerializer(review).data, message="Review marked as helpful")

    @extend_schema(summary="Report a review", request=ReportSerializer, tags=["Reviews"])
    @action(detail=True, methods=["post"])
    def report(self, request, pk=None):
        data = ReportSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        services.report_review(actor=principal_from(request), review_id=pk, **data.validated_data)
        return success(message="Review reported successfully")

    @extend_schema(summary="Respond as the store owner", request=StoreResponseSerializer, tags=["Reviews"])
    @action(detail=True, methods=["post"], url_path="response")
    def respond(self, request, pk=None):
        data = StoreResponseSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        review = services.respond_to_review(actor=principal_from(request), review_id=pk, **data.validated_data)
        return success(ReviewSerializer(review).data, message="Response added successfully")


@extend_schema_view(list=extend_schema(summary="All reviews", tags=["Admin: Reviews"]))
class AdminReviewViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    serializer_class = AdminReviewSerializer
    permission_classes = [IsAdmin]

    def get_queryset(self):
        params = self.request.query_params
        return services.all_reviews(
            status=params.get("status"), store_id=params.get("store_id"), user_id=params.get("user_id"),
        )

    @extend_schema(summary="Hide, restore or delete a review", request=ModerationSerializer, tags=["Admin: Reviews"])
    @action(detail=True, methods=["patch"])
    def moderate(self, request, pk=None):
        data = ModerationSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        review = services.moderate_review(actor=principal_from(request), review_id=pk, **data.validated_data)
        return success(self.get_serializer(review).data, message="Review moderated successfully")
