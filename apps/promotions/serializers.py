from rest_framework import serializers

from apps.stores.models import Store

from .models import Promotion, PromotionUsage


class PromotionSerializer(serializers.ModelSerializer):
    stores = serializers.PrimaryKeyRelatedField(
        many=True, queryset=Store.objects.filter(is_deleted=False), required=False,
    )

    class Meta:
        model = Promotion
        exclude = ("is_deleted", "created_by")
        read_only_fields = ("id", "used_count", "created_at", "updated_at")

    def validate_code(self, value):
        return value.strip().upper()

    def validate(self, attrs):
        valid_from = attrs.get("valid_from", getattr(self.instance, "valid_from", None))
        valid_until = attrs.get("valid_until", getattr(self.instance, "valid_until", None))
        if valid_from and valid_until and valid_until <= valid_from:
            raise serializers.ValidationError({"valid_until": "Must be after valid_from"})
        promo_type = attrs.get("type", getattr(self.instance, "type", None))
        value = attrs.get("discount_value", getattr(self.instance, "discount_value", None))
        if promo_type == "percentage" and value is not None and value > 100:
            raise serializers.ValidationError({"discount_value": "Percentage discount cannot exceed 100"})
        return attrs


class PromotionUpdateSerializer(PromotionSerializer):
    class Meta(PromotionSerializer.Meta):
        read_only_fields = ("id", "code", "used_count", "created_at", "updated_at")


class PublicPromotionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Promotion
        fields = (
            "code", "name", "description", "type", "discount_value", "max_discount",
            "min_order_amount", "applicable_to", "valid_until",
        )
        read_only_fields = fields


class PromotionCheckSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=30)
    order_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    store_id = serializers.UUIDField(required=False, allow_null=True)
    categories = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    item_ids = serializers.ListField(child=serializers.CharField(), required=False, default=list)


class PromotionUsageSerializer(serializers.ModelSerializer):
    code = serializers.CharField(source="promotion.code", read_only=True)

    class Meta:
        model = PromotionUsage
        fields = ("id", "code", "user", "order", "discount_applied", "used_at")
        read_only_fields = fields
