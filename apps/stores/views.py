# stores/views.py
from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny

from common.permissions import IsAdmin, IsStoreOwner
from common.principal import principal_from
from common.responses import success

from . import services
from .models import MenuItem, Store
from .serializers import (
    AdminStoreSerializer,
    CommissionSerializer,
    MenuItemSerializer,
    PopularItemsSerializer,
    PublicStoreSerializer,
    ReasonSerializer,
    StockUpdateSerializer,
    StoreApprovalSerializer,
    StoreMetadataSerializer,
    StoreSerializer,
)


# ---------------------------------------------------------------------
# Store owner: stores
# ---------------------------------------------------------------------
@extend_schema_view(
    list=extend_schema(summary="My stores", tags=["Store Owner"]),
    create=extend_schema(summary="Create a store (draft)", tags=["Store Owner"]),
    retrieve=extend_schema(tags=["Store Owner"]),
    partial_update=extend_schema(tags=["Store Owner"]),
    destroy=extend_schema(tags=["Store Owner"]),
)
class OwnerStoreViewSet(viewsets.ModelViewSet):
    serializer_class = StoreSerializer
    permission_classes = [IsStoreOwner]
    http_method_names = ["get", "post", "patch", "delete"]

    def get_queryset(self):
        return Store.objects.filter(owner=self.request.user, is_deleted=False).order_by("-created_at")

    def retrieve(self, request, *args, **kwargs):
        store = services.get_owned_store(principal_from(request), kwargs["pk"])
        return success(StoreSerializer(store).data)

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        store = services.create_store(actor=principal_from(request), **serializer.validated_data)
        return success(
            StoreSerializer(store).data,
            message="Store created successfully. Submit it for verification when ready.",
            status=status.HTTP_201_CREATED,
        )

    def partial_update(self, request, *args, **kwargs):
        store = services.get_owned_store(principal_from(request), kwargs["pk"])
        serializer = self.get_serializer(store, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        store = services.update_store(actor=principal_from(request), store_id=kwargs["pk"], **serializer.validated_data)
        return success(StoreSerializer(store).data, message="Store updated")

    def destroy(self, request, *args, **kwargs):
        services.delete_store(actor=principal_from(request), store_id=kwargs["pk"])
        return success(message="Store deleted")

    @extend_schema(summary="Submit store for verification", request=None, tags=["Store Owner"])
    @action(detail=True, methods=["post"])
    def submit(self, request, pk=None):
        store = services.submit_store_for_verification(actor=principal_from(request), store_id=pk)
        return success(StoreSerializer(store).data, message="Store submitted for verification")

    @extend_schema(summary="Open/close the store", request=None, tags=["Store Owner"])
    @action(detail=True, methods=["patch"], url_path="toggle-status")
    def toggle_status(self, request, pk=None):
        store = services.toggle_store_open(actor=principal_from(request), store_id=pk)
        return success({"is_open": store.is_open}, message=f"Store is now {'open' if store.is_open else 'closed'}")

    @extend_schema(summary="Store menu (owner view)", tags=["Store Owner"])
    @action(detail=True, methods=["get", "post"], url_path="menu")
    def menu(self, request, pk=None):
        actor = principal_from(request)
        if request.method == "POST":
            serializer = MenuItemSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            item = services.add_menu_item(actor=actor, store_id=pk, **serializer.validated_data)
            return success(MenuItemSerializer(item).data, message="Menu item added", status=status.HTTP_201_CREATED)

        store = services.get_owned_store(actor, pk)
        items = services.store_menu(store, include_unavailable=True)
        return success(MenuItemSerializer(items, many=True).data)


# ---------------------------------------------------------------------
# Store owner: menu items
# ---------------------------------------------------------------------
@extend_schema_view(
    partial_update=extend_schema(summary="Update menu item", tags=["Store Owner"]),
    destroy=extend_schema(summary="Delete menu item", tags=["Store Owner"]),
)
class OwnerMenuItemViewSet(mixins.UpdateModelMixin, mixins.DestroyModelMixin, viewsets.GenericViewSet):
    serializer_class = MenuItemSerializer
    permission_classes = [IsStoreOwner]
    http_method_names = ["patch", "delete"]

    def get_queryset(self):
        return MenuItem.objects.filter(store__owner=self.request.user, is_deleted=False)

    def partial_update(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        item = services.update_menu_item(actor=principal_from(request), menu_item_id=kwargs["pk"], **serializer.validated_data)
        return success(MenuItemSerializer(item).data, message="Menu item updated")

    def destroy(self, request, *args, **kwargs):
        services.delete_menu_item(actor=principal_from(request), menu_item_id=kwargs["pk"])
        return success(message="Menu item deleted")

    @extend_schema(summary="Toggle availability", request=None, tags=["Store Owner"])
    @action(detail=True, methods=["patch"], url_path="toggle-availability")
    def toggle_availability(self, request, pk=None):
        item = services.toggle_menu_item_availability(actor=principal_from(request), menu_item_id=pk)
        return success(MenuItemSerializer(item).data)

    @extend_schema(summary="Update stock", request=StockUpdateSerializer, tags=["Store Owner"])
    @action(detail=True, methods=["patch"])
    def stock(self, request, pk=None):
        data = StockUpdateSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        item = services.update_menu_item_stock(actor=principal_from(request), menu_item_id=pk, **data.validated_data)
        return success(MenuItemSerializer(item).data, message="Stock updated successfully")


# ---------------------------------------------------------------------
# Public catalog
# ---------------------------------------------------------------------
@extend_schema_view(
    list=extend_schema(summary="Browse active stores", tags=["Catalog"]),
    retrieve=extend_schema(summary="Store detail", tags=["Catalog"]),
)
class PublicStoreViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    serializer_class = PublicStoreSerializer
    permission_classes = [AllowAny]
    search_fields = ("store_name", "description", "category")
    ordering_fields = ("rating", "created_at", "times_ordered")

    def get_queryset(self):
        return services.public_stores(
            category=self.request.query_params.get("category"),
            city=self.request.query_params.get("city"),
        )

    def retrieve(self, request, *args, **kwargs):
        return success(self.get_serializer(self.get_object()).data)

    @extend_schema(summary="Store menu grouped by category", tags=["Catalog"])
    @action(detail=True, methods=["get"])
    def menu(self, request, pk=None):
        store = self.get_object()
        grouped = services.group_menu_by_category(services.store_menu(store))
        data = [
            {"category": category, "items": MenuItemSerializer(items, many=True).data}
            for category, items in grouped.items()
        ]
        return success({"store": PublicStoreSerializer(store).data, "menu": data})

    @extend_schema(summary="Best-selling menu items", parameters=[PopularItemsSerializer], tags=["Catalog"])
    @action(detail=True, methods=["get"])
    def popular(self, request, pk=None):
        store = self.get_object()
        query = PopularItemsSerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        items = MenuItemSerializer(services.popular_items(store, **query.validated_data), many=True).data
        return success({"store": store.store_name, "items": items, "count": len(items)})


# ---------------------------------------------------------------------
# Admin: store verification, moderation, menu oversight
# ---------------------------------------------------------------------
@extend_schema_view(
    list=extend_schema(summary="All stores", tags=["Admin: Stores"]),
    retrieve=extend_schema(tags=["Admin: Stores"]),
)
class AdminStoreViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    queryset = Store.objects.filter(is_deleted=False).select_related("owner").order_by("-created_at")
    serializer_class = AdminStoreSerializer
    permission_classes = [IsAdmin]
    filterset_fields = ("status", "category", "is_verified", "available")
    search_fields = ("store_name", "license_number", "owner__email")

    def retrieve(self, request, *args, **kwargs):
        return success(self.get_serializer(self.get_object()).data)

    @extend_schema(summary="Stores awaiting verification", tags=["Admin: Stores"])
    @action(detail=False, methods=["get"])
    def pending(self, request):
        page = self.paginate_queryset(services.pending_stores().order_by("created_at"))
        return self.get_paginated_response(self.get_serializer(page, many=True).data)

    @extend_schema(summary="Approve store", request=StoreApprovalSerializer, tags=["Admin: Stores"])
    @action(detail=True, methods=["post"])
    def approve(self, request, pk=None):
        data = StoreApprovalSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        store = services.approve_store(actor=principal_from(request), store_id=pk, **data.validated_data)
        return success(self.get_serializer(store).data, message="Store approved")

    @extend_schema(summary="Reject store", request=ReasonSerializer, tags=["Admin: Stores"])
    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        data = ReasonSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        store = services.reject_store(actor=principal_from(request), store_id=pk, **data.validated_data)
        return success(self.get_serializer(store).data, message="Store rejected")

    @extend_schema(summary="Suspend store", request=ReasonSerializer, tags=["Admin: Stores"])
    @action(detail=True, methods=["patch"])
    def suspend(self, request, pk=None):
        data = ReasonSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        store = services.suspend_store(actor=principal_from(request), store_id=pk, **data.validated_data)
        return success(self.get_serializer(store).data, message="Store suspended")

    @extend_schema(summary="Set commission rate", request=CommissionSerializer, tags=["Admin: Stores"])
    @action(detail=True, methods=["patch"])
    def commission(self, request, pk=None):
        data = CommissionSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        store = services.update_store_commission(actor=principal_from(request), store_id=pk, **data.validated_data)
        return success(self.get_serializer(store).data, message="Commission rate updated")

    @extend_schema(summary="Update store metadata", request=StoreMetadataSerializer, tags=["Admin: Stores"])
    @action(detail=True, methods=["patch"])
    def metadata(self, request, pk=None):
        data = StoreMetadataSerializer(data=request.data, partial=True)
        data.is_valid(raise_exception=True)
        store = services.update_store_metadata(actor=principal_from(request), store_id=pk, **data.validated_data)
        return success(self.get_serializer(store).data, message="Store metadata updated")


@extend_schema_view(list=extend_schema(summary="All menu items", tags=["Admin: Stores"]))
class AdminMenuItemViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    queryset = MenuItem.objects.filter(is_deleted=False).select_related("store").order_by("-created_at")
    serializer_class = MenuItemSerializer
    permission_classes = [IsAdmin]
    filterset_fields = ("store", "category", "is_available", "disabled_by_admin")
    search_fields = ("name", "tags")

    def retrieve(self, request, *args, **kwargs):
        return success(self.get_serializer(self.get_object()).data)

    @extend_schema(summary="Disable a menu item", request=ReasonSerializer, tags=["Admin: Stores"])
    @action(detail=True, methods=["post"])
    def disable(self, request, pk=None):
        data = ReasonSerializer(data=request.data)
        data.is_valid(raise_exception=True)
        item = services.disable_menu_item(actor=principal_from(request), menu_item_id=pk, **data.validated_data)
        return success(self.get_serializer(item).data, message="Menu item disabled")
