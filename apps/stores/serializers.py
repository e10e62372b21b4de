from rest_framework import serializers

from .models import MenuItem, Store


class StoreSerializer(serializers.ModelSerializer):
    owner_id = serializers.UUIDField(read_only=True)
    effective_commission_rate = serializers.DecimalField(max_digits=5, decimal_places=2, read_only=True)

    class Meta:
        model = Store
        exclude = ("owner", "is_deleted")
        read_only_fields = (
            "id", "rating", "total_reviews", "times_ordered", "is_verified", "verification_notes",
            "status", "rejection_reason", "commission_rate", "available", "is_open",
            "created_at", "updated_at",
        )


class PublicStoreSerializer(serializers.ModelSerializer):
    class Meta:
        model = Store
        fields = (
            "id", "store_name", "address", "city", "phone", "category", "description",
            "delivery_time", "min_order", "delivery_fee", "opening_time", "closing_time",
            "rating", "total_reviews", "is_open",
        )
        read_only_fields = fields


class MenuItemSerializer(serializers.ModelSerializer):
    store_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = MenuItem
        exclude = ("store", "is_deleted")
        read_only_fields = (
            "id", "times_ordered", "total_revenue", "disabled_by_admin", "in_stock",
            "created_at", "updated_at",
        )


class StockUpdateSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=0)
    operation = serializers.ChoiceField(choices=("set", "increment", "decrement"), default="set")


class PopularItemsSerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=50, default=10)


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class StoreApprovalSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class CommissionSerializer(serializers.Serializer):
    commission_rate = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100)


class StoreMetadataSerializer(serializers.ModelSerializer):
    class Meta:
        model = Store
        fields = ("category", "description", "opening_time", "closing_time", "delivery_fee", "min_order")
        extra_kwargs = {f: {"required": False} for f in fields}


class AdminStoreSerializer(StoreSerializer):
    owner_email = serializers.EmailField(source="owner.email", read_only=True)

    class Meta(StoreSerializer.Meta):
        pass
