from django.conf import settings
from django.db import models

from common.models import BaseEntity, money_field


class DisputeType(models.TextChoices):
    ORDER_ISSUE = "order_issue", "Order issue"
    PAYMENT_ISSUE = "payment_issue", "Payment issue"
    QUALITY_ISSUE = "quality_issue", "Quality issue"
    DELIVERY_ISSUE = "delivery_issue", "Delivery issue"
    OTHER = "other", "Other"


class DisputeStatus(models.TextChoices):
    OPEN = "open", "Open"
    UNDER_REVIEW = "under_review", "Under review"
    ESCALATED = "escalated", "Escalated"
    RESOLVED = "resolved", "Resolved"
    CLOSED = "closed", "Closed"
    REJECTED = "rejected", "Rejected"


FINAL_DISPUTE_STATUSES = (DisputeStatus.RESOLVED, DisputeStatus.CLOSED, DisputeStatus.REJECTED)


class DisputePriority(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    URGENT = "urgent", "Urgent"


class ResolutionAction(models.TextChoices):
    REFUND_FULL = "refund_full", "Full refund"
    REFUND_PARTIAL = "refund_partial", "Partial refund"
    STORE_ACTION = "store_action", "Store action"
    NO_ACTION = "no_action", "No action"
    OTHER = "other", "Other"


REFUND_ACTIONS = (ResolutionAction.REFUND_FULL, ResolutionAction.REFUND_PARTIAL)


class Dispute(BaseEntity):
    order = models.OneToOneField("orders.Order", on_delete=models.CASCADE, related_name="dispute")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="disputes")
    store = models.ForeignKey("stores.Store", on_delete=models.CASCADE, related_name="disputes")

    type = models.CharField(max_length=20, choices=DisputeType.choices)
    title = models.CharField(max_length=200)
    description = models.TextField(max_length=2000)
    attachments = models.JSONField(default=list, blank=True)  # URLs

    status = models.CharField(max_length=20, choices=DisputeStatus.choices, default=DisputeStatus.OPEN, db_index=True)
    priority = models.CharField(max_length=10, choices=DisputePriority.choices, default=DisputePriority.MEDIUM, db_index=True)

    resolution_action = models.CharField(max_length=20, choices=ResolutionAction.choices, blank=True)
    resolution_amount = money_field(null=True, blank=True)
    resolution_notes = models.CharField(max_length=1000, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+",
    )
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "priority", "created_at"]),
            models.Index(fields=["user", "status"]),
            models.Index(fields=["store", "status"]),
        ]

    def __str__(self):
        return f"Dispute {self.id}: {self.title}"

    @property
    def is_final(self) -> bool:
        return self.status in FINAL_DISPUTE_STATUSES

    def add_event(self, action: str, performed_by_id, notes: str = "") -> "DisputeEvent":
        return DisputeEvent.objects.create(dispute=self, action=action, performed_by_id=performed_by_id, notes=notes)


class DisputeEvent(BaseEntity):
    """Timeline entry; append-only."""
    dispute = models.ForeignKey(Dispute, on_delete=models.CASCADE, related_name="timeline")
    action = models.CharField(max_length=100)
    performed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name="+")
    notes = models.CharField(max_length=500, blank=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return self.action
