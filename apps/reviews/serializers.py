from rest_framework import serializers

from .models import ReportReason, Review, ReviewStatus

RATING = {"min_value": 1, "max_value": 5}


class ItemRatingSerializer(serializers.Serializer):
    menu_item_id = serializers.UUIDField()
    item_name = serializers.CharField(max_length=100)
    rating = serializers.IntegerField(**RATING)
    comment = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class ReviewSerializer(serializers.ModelSerializer):
    order_id = serializers.UUIDField(read_only=True)
    store_id = serializers.UUIDField(read_only=True)
    user_name = serializers.CharField(source="user.name", read_only=True)
    is_editable = serializers.BooleanField(read_only=True)

    class Meta:
        model = Review
        fields = (
            "id", "order_id", "store_id", "user_name", "store_rating", "store_comment", "item_ratings",
            "delivery_rating", "delivery_comment", "status", "store_response", "responded_at",
            "helpful_count", "editable_until", "is_editable", "created_at", "updated_at",
        )
        read_only_fields = fields


class AdminReviewSerializer(ReviewSerializer):
    user_id = serializers.UUIDField(read_only=True)

    class Meta(ReviewSerializer.Meta):
        fields = ReviewSerializer.Meta.fields + ("user_id", "moderation_notes", "moderated_by")
        read_only_fields = fields


class ReviewCreateSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    store_rating = serializers.IntegerField(**RATING)
    store_comment = serializers.CharField(max_length=1000, required=False, allow_blank=True)
    item_ratings = ItemRatingSerializer(many=True, required=False)
    delivery_rating = serializers.IntegerField(required=False, allow_null=True, **RATING)
    delivery_comment = serializers.CharField(max_length=500, required=False, allow_blank=True)

    def validate_item_ratings(self, value):
        return [{**entry, "menu_item_id": str(entry["menu_item_id"])} for entry in value]


class ReviewUpdateSerializer(ReviewCreateSerializer):
    order_id = None
    store_rating = serializers.IntegerField(required=False, **RATING)


class StoreResponseSerializer(serializers.Serializer):
    response = serializers.CharField(max_length=500)


class ReportSerializer(serializers.Serializer):
    reason = serializers.ChoiceField(choices=ReportReason.choices)


class ModerationSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[ReviewStatus.ACTIVE, ReviewStatus.HIDDEN, ReviewStatus.DELETED])
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
