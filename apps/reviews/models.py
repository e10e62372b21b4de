from datetime import timedelta

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from common.models import BaseEntity

RATING_VALIDATORS = [MinValueValidator(1), MaxValueValidator(5)]


def default_editable_until():
    return timezone.now() + timedelta(hours=settings.MARKETPLACE_REVIEW_EDIT_WINDOW_HOURS)


class ReviewStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    REPORTED = "reported", "Reported"
    HIDDEN = "hidden", "Hidden"
    DELETED = "deleted", "Deleted"


class ReportReason(models.TextChoices):
    SPAM = "spam", "Spam"
    FAKE = "fake", "Fake"
    INAPPROPRIATE = "inappropriate", "Inappropriate"
    OTHER = "other", "Other"


class Review(BaseEntity):
    order = models.OneToOneField("orders.Order", on_delete=models.CASCADE, related_name="review")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="reviews")
    store = models.ForeignKey("stores.Store", on_delete=models.CASCADE, related_name="reviews")

    store_rating = models.PositiveSmallIntegerField(validators=RATING_VALIDATORS, db_index=True)
    store_comment = models.CharField(max_length=1000, blank=True)
    item_ratings = models.JSONField(default=list, blank=True)  # [{menu_item_id, item_name, rating, comment}]
    delivery_rating = models.PositiveSmallIntegerField(null=True, blank=True, validators=RATING_VALIDATORS)
    delivery_comment = models.CharField(max_length=500, blank=True)

    status = models.CharField(max_length=20, choices=ReviewStatus.choices, default=ReviewStatus.ACTIVE, db_index=True)
    moderated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+",
    )
    moderation_notes = models.CharField(max_length=500, blank=True)

    store_response = models.CharField(max_length=500, blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)
    responded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+",
    )

    helpful_count = models.PositiveIntegerField(default=0)
    helpful_users = models.ManyToManyField(settings.AUTH_USER_MODEL, blank=True, related_name="helpful_reviews")
    editable_until = models.DateTimeField(default=default_editable_until)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["store", "status", "created_at"]),
            models.Index(fields=["user", "created_at"]),
        ]

    def __str__(self):
        return f"Review {self.id} ({self.store_rating}/5)"

    @property
    def is_editable(self) -> bool:
        return timezone.now() < self.editable_until


class ReviewReport(BaseEntity):
    review = models.ForeignKey(Review, on_delete=models.CASCADE, related_name="reports")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="review_reports")
    reason = models.CharField(max_length=20, choices=ReportReason.choices)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["review", "user"], name="uniq_review_report_per_user"),
        ]
