from rest_framework import serializers

from .models import Payment, PaymentGateway, PaymentMethod, PaymentStatus, Payout, TransferMethod


class PaymentSerializer(serializers.ModelSerializer):
    order_status = serializers.CharField(source="order.status", read_only=True)
    store_name = serializers.CharField(source="store.store_name", read_only=True)

    class Meta:
        model = Payment
        exclude = ("is_deleted", "gateway_response")
        read_only_fields = [f.name for f in Payment._meta.fields]


class AdminPaymentSerializer(PaymentSerializer):
    class Meta(PaymentSerializer.Meta):
        exclude = ("is_deleted",)


class PaymentCreateSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CASH_ON_DELIVERY)
    payment_gateway = serializers.ChoiceField(choices=PaymentGateway.choices, required=False, allow_blank=True, default="")

    def validate(self, attrs):
        if attrs["payment_method"] == PaymentMethod.ONLINE and not attrs.get("payment_gateway"):
            raise serializers.ValidationError({"payment_gateway": "Required for online payments"})
        return attrs


class PaymentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PaymentStatus.choices)
    transaction_id = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    gateway_order_id = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")
    gateway_response = serializers.JSONField(required=False, default=dict)


class RefundSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    refund_transaction_id = serializers.CharField(max_length=120, required=False, allow_blank=True, default="")


class PayoutSerializer(serializers.ModelSerializer):
    store_name = serializers.CharField(source="store.store_name", read_only=True)
    payment_ids = serializers.PrimaryKeyRelatedField(source="payments", many=True, read_only=True)

    class Meta:
        model = Payout
        exclude = ("is_deleted", "payments", "transfer_response")
        read_only_fields = [f.name for f in Payout._meta.fields]


class PayoutGenerateSerializer(serializers.Serializer):
    store_id = serializers.UUIDField()
    period_start = serializers.DateTimeField()
    period_end = serializers.DateTimeField()
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, default="")
    bank_details = serializers.JSONField(required=False, default=dict)


class PayoutCompleteSerializer(serializers.Serializer):
    transfer_id = serializers.CharField(max_length=120)
    transfer_method = serializers.ChoiceField(choices=TransferMethod.choices, required=False)
    transfer_response = serializers.JSONField(required=False, default=dict)


class PayoutFailSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)


class EarlyPayoutSerializer(serializers.Serializer):
    store_id = serializers.UUIDField()
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, default="")


class StatementQuerySerializer(serializers.Serializer):
    store_id = serializers.UUIDField(required=False)
    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)
