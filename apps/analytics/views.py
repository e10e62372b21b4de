# analytics/views.py
from drf_spectacular.utils import extend_schema
from rest_framework import viewsets
from rest_framework.decorators import action

from common.permissions import IsAdmin, IsStoreOwner
from common.principal import principal_from
from common.responses import success

from . import services
from .serializers import DateRangeSerializer, ExportSerializer, OrdersOverTimeSerializer, TopStoresSerializer


def _query(serializer_class, request) -> dict:
    query = serializer_class(data=request.query_params)
    query.is_valid(raise_exception=True)
    return query.validated_data


class AdminAnalyticsViewSet(viewsets.ViewSet):
    permission_classes = [IsAdmin]

    @extend_schema(summary="Marketplace dashboard", parameters=[DateRangeSerializer], tags=["Admin: Analytics"])
    @action(detail=False, methods=["get"])
    def dashboard(self, request):
        return success(services.dashboard(**_query(DateRangeSerializer, request)))

    @extend_schema(summary="Orders over time", parameters=[OrdersOverTimeSerializer], tags=["Admin: Analytics"])
    @action(detail=False, methods=["get"])
    def orders(self, request):
        return success(services.orders_over_time(**_query(OrdersOverTimeSerializer, request)))

    @extend_schema(summary="Revenue totals", parameters=[DateRangeSerializer], tags=["Admin: Analytics"])
    @action(detail=False, methods=["get"])
    def revenue(self, request):
        totals = services.revenue(**_query(DateRangeSerializer, request))
        return success({k: (v if isinstance(v, int) else str(v)) for k, v in totals.items()})

    @extend_schema(summary="Top stores by revenue", parameters=[TopStoresSerializer], tags=["Admin: Analytics"])
    @action(detail=False, methods=["get"], url_path="top-stores")
    def top_stores(self, request):
        return success(services.top_stores(**_query(TopStoresSerializer, request)))

    @extend_schema(summary="Single store analytics", parameters=[DateRangeSerializer], tags=["Admin: Analytics"])
    @action(detail=False, methods=["get"], url_path=r"stores/(?P<store_id>[0-9a-f-]+)")
    def store(self, request, store_id=None):
        return success(services.store_report(principal_from(request), store_id, **_query(DateRangeSerializer, request)))

    @extend_schema(summary="Export orders, payments, stores or users", parameters=[ExportSerializer], tags=["Admin: Analytics"])
    @action(detail=False, methods=["get"])
    def export(self, request):
        query = _query(ExportSerializer, request)
        return success(services.export_report(query.pop("type"), **query))


class StoreAnalyticsViewSet(viewsets.ViewSet):
    permission_classes = [IsStoreOwner]

    @extend_schema(summary="Analytics for one of my stores", parameters=[DateRangeSerializer], tags=["Store Owner: Analytics"])
    def retrieve(self, request, pk=None):
        return success(services.store_report(principal_from(request), pk, **_query(DateRangeSerializer, request)))
