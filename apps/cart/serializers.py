from rest_framework import serializers


class CartItemInputSerializer(serializers.Serializer):
    menu_item_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, max_value=100, default=1)


class DiscountCodeSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=30)
