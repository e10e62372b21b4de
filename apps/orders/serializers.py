from rest_framework import serializers

from apps.accounts.serializers import AddressSerializer

from .models import FraudSignal, Order, OrderItem, OrderStatus


class OrderItemSerializer(serializers.ModelSerializer):
    menu_item_id = serializers.UUIDField(read_only=True)
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ("id", "menu_item_id", "item_name", "quantity", "unit_price", "line_total")
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    customer_id = serializers.UUIDField(read_only=True)
    store_id = serializers.UUIDField(read_only=True)
    store_name = serializers.CharField(source="store.store_name", read_only=True)

    class Meta:
        model = Order
        exclude = ("customer", "store", "is_deleted", "fraud_flags")
        read_only_fields = [f.name for f in Order._meta.fields]


class AdminOrderSerializer(OrderSerializer):
    customer_email = serializers.EmailField(source="customer.email", read_only=True)

    class Meta(OrderSerializer.Meta):
        exclude = ("customer", "store", "is_deleted")


class OrderLineInputSerializer(serializers.Serializer):
    menu_item = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, max_value=100, default=1)


class OrderCreateSerializer(serializers.Serializer):
    items = OrderLineInputSerializer(many=True, allow_empty=False)
    delivery_address = AddressSerializer()
    promo_code = serializers.CharField(max_length=30, required=False, allow_blank=True)


class CartCheckoutSerializer(serializers.Serializer):
    delivery_address = AddressSerializer()


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class OrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class FraudSignalSerializer(serializers.ModelSerializer):
    user_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = FraudSignal
        exclude = ("user", "is_deleted")
        read_only_fields = [f.name for f in FraudSignal._meta.fields]
