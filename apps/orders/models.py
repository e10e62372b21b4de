"""
Order ledger.

Status moves only along ALLOWED_TRANSITIONS; Delivered, Cancelled and
Rejected are terminal. Line items carry the unit price captured when the
order was placed and are never re-read from the catalog.
"""
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from common.models import BaseEntity, money_field
from common.money import ZERO, to_money


class OrderStatus(models.TextChoices):
    PENDING = "Pending", "Pending"
    CONFIRMED = "Confirmed", "Confirmed"
    OUT_FOR_DELIVERY = "OutForDelivery", "Out for delivery"
    DELIVERED = "Delivered", "Delivered"
    CANCELLED = "Cancelled", "Cancelled"
    REJECTED = "Rejected", "Rejected"


ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.REJECTED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
    OrderStatus.REJECTED: set(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if not targets)
CUSTOMER_CANCELLABLE = (OrderStatus.PENDING, OrderStatus.CONFIRMED)


class Order(BaseEntity):
    customer = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="orders")
    store = models.ForeignKey("stores.Store", on_delete=models.PROTECT, related_name="orders")

    subtotal = money_field(default=Decimal("0.00"))
    discount = money_field(default=Decimal("0.00"), validators=[MinValueValidator(0)])
    promo_code = models.CharField(max_length=30, blank=True)
    final_price = money_field()
    delivery_address = models.JSONField(default=dict)  # {label, street, city, state, pincode, country}

    status = models.CharField(max_length=20, choices=OrderStatus.choices, default=OrderStatus.PENDING, db_index=True)
    rejection_reason = models.CharField(max_length=500, blank=True)
    cancellation_reason = models.CharField(max_length=500, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    fraud_flags = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["customer", "status", "created_at"]),
            models.Index(fields=["store", "status"]),
        ]

    def __str__(self):
        return f"Order {self.id} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_transition_to(self, target: str) -> bool:
        return target in ALLOWED_TRANSITIONS.get(self.status, set())

    def computed_final_price(self) -> Decimal:
        """subtotal recomputed from the persisted lines, minus discount."""
        subtotal = sum((line.line_total for line in self.items.all()), ZERO)
        return to_money(subtotal - self.discount)


class OrderItem(BaseEntity):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    menu_item = models.ForeignKey("stores.MenuItem", on_delete=models.SET_NULL, null=True, related_name="order_items")
    item_name = models.CharField(max_length=100)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    unit_price = money_field()

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.quantity} x {self.item_name}"

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


class FraudSeverity(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"


class FraudSignal(BaseEntity):
    """One raised fraud flag, kept for admin review."""
    source = models.CharField(max_length=50, default="order_creation")
    entity_type = models.CharField(max_length=30, default="order")
    entity_id = models.UUIDField(null=True, blank=True)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="fraud_signals")
    severity = models.CharField(max_length=10, choices=FraudSeverity.choices)
    score = models.FloatField(default=0.0)
    rule = models.CharField(max_length=60)
    details = models.JSONField(default=dict, blank=True)
    processed = models.BooleanField(default=False)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["user", "severity"])]

    def __str__(self):
        return f"{self.rule} ({self.severity})"
