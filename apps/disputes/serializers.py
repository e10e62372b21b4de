from rest_framework import serializers

from .models import Dispute, DisputeEvent, DisputeType, ResolutionAction


class DisputeEventSerializer(serializers.ModelSerializer):
    performed_by_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = DisputeEvent
        fields = ("action", "performed_by_id", "notes", "created_at")
        read_only_fields = fields


class DisputeSerializer(serializers.ModelSerializer):
    order_id = serializers.UUIDField(read_only=True)
    store_id = serializers.UUIDField(read_only=True)
    user_id = serializers.UUIDField(read_only=True)
    store_name = serializers.CharField(source="store.store_name", read_only=True)
    order_status = serializers.CharField(source="order.status", read_only=True)
    timeline = DisputeEventSerializer(many=True, read_only=True)

    class Meta:
        model = Dispute
        exclude = ("order", "store", "user", "is_deleted", "metadata")
        read_only_fields = [f.name for f in Dispute._meta.fields]


class DisputeCreateSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    type = serializers.ChoiceField(choices=DisputeType.choices)
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(max_length=2000)
    attachments = serializers.ListField(child=serializers.URLField(), required=False, default=list)


class ResolveSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=ResolutionAction.choices)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True)
    notes = serializers.CharField(max_length=1000, required=False, allow_blank=True, default="")


class NotesSerializer(serializers.Serializer):
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
