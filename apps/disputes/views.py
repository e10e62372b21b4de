# disputes/views.py
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from common.permissions import IsAdmin, IsCustomer, IsStoreOwner
from common.principal import principal_from
from common.responses import success

from . import services
from .serializers import DisputeCreateSerializer, DisputeSerializer, NotesSerializer, ResolveSerializer


class DisputeViewSet(viewsets.GenericViewSet):
    serializer_class = DisputeSerializer

    def get_permissions(self):
        if self.action in ("create", "my_disputes"):
            return [IsCustomer()]
        if self.action == "store_disputes":
            return [IsStoreOwner()]
        return [IsAuthenticated()]

    def get_queryset(self):
        return services.my_disputes(principal_from(self.request))

    def _page(self, qs):
        page = self.paginate_queryset(qs)
        return self.get_paginated_response(self.get_serializer(page, many=True).data)

    @extend_schema(summary="Open a dispute on my order", request=DisputeCreateSerializer, tags=["Disputes"])
    def create(self, request):
        data = DisputeCreateSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        dispute = services.create_dispute(actor=principal_from(request), **data.validated_data)
        return success(DisputeSerializer(dispute).data, message="Dispute created successfully", status=status.HTTP_201_CREATED)

    @extend_schema(summary="Dispute detail", tags=["Disputes"])
    def retrieve(self, request, pk=None):
        return success(DisputeSerializer(services.get_dispute_for(principal_from(request), pk)).data)

    @extend_schema(summary="My disputes", tags=["Disputes"])
    @action(detail=False, methods=["get"], url_path="my-disputes")
    def my_disputes(self, request):
        params = request.query_params
        return self._page(services.my_disputes(principal_from(request), status=params.get("status"), type=params.get("type")))

    @extend_schema(summary="Disputes against my stores", tags=["Disputes"])
    @action(detail=False, methods=["get"], url_path="store")
    def store_disputes(self, request):
        params = request.query_params
        return self._page(services.store_disputes(principal_from(request), status=params.get("status"), type=params.get("type")))


@extend_schema_view(
    list=extend_schema(summary="All disputes", tags=["Admin: Disputes"]),
    retrieve=extend_schema(tags=["Admin: Disputes"]),
)
class AdminDisputeViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    serializer_class = DisputeSerializer
    permission_classes = [IsAdmin]

    def get_queryset(self):
        params = self.request.query_params
        return services.all_disputes(
            status=params.get("status"), priority=params.get("priority"), type=params.get("type"),
        )

    def retrieve(self, request, *args, **kwargs):
        return success(self.get_serializer(services.get_dispute_for(principal_from(request), kwargs["pk"])).data)

    @extend_schema(summary="Resolve a dispute", request=ResolveSerializer, tags=["Admin: Disputes"])
    @action(detail=True, methods=["post"])
    def resolve(self, request, pk=None):
        data = ResolveSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        dispute = services.resolve_dispute(actor=principal_from(request), dispute_id=pk, **data.validated_data)
        return success(self.get_serializer(dispute).data, message="Dispute resolved successfully")

    @extend_schema(summary="Escalate a dispute", request=NotesSerializer, tags=["Admin: Disputes"])
    @action(detail=True, methods=["post"])
    def escalate(self, request, pk=None):
        data = NotesSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        dispute = services.escalate_dispute(actor=principal_from(request), dispute_id=pk, **data.validated_data)
        return success(self.get_serializer(dispute).data, message="Dispute escalated")

    @extend_schema(summary="Close a dispute", request=NotesSerializer, tags=["Admin: Disputes"])
    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        data = NotesSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        dispute = services.close_dispute(actor=principal_from(request), dispute_id=pk, **data.validated_data)
        return success(self.get_serializer(dispute).data, message="Dispute closed")
