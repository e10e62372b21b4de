from rest_framework import serializers

from apps.stores.models import StoreCategory

from .services import EXPORTS, TRUNCATE


class DateRangeSerializer(serializers.Serializer):
    start = serializers.DateTimeField(required=False)
    end = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        if attrs.get("start") and attrs.get("end") and attrs["end"] < attrs["start"]:
            raise serializers.ValidationError("end must be after start")
        return attrs


class OrdersOverTimeSerializer(DateRangeSerializer):
    group_by = serializers.ChoiceField(choices=list(TRUNCATE), default="day")


class TopStoresSerializer(serializers.Serializer):
    category = serializers.ChoiceField(choices=StoreCategory.choices, required=False)
    city = serializers.CharField(required=False)
    limit = serializers.IntegerField(min_value=1, max_value=50, default=10)


class ExportSerializer(DateRangeSerializer):
    type = serializers.ChoiceField(choices=list(EXPORTS))
