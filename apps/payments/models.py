"""
Payments and store payouts.

A Payment is created once per order and splits the amount into platform
commission and store payout (commission rounded half up to the cent, payout
is the remainder). Completed payments become payout-eligible and are later
batched into a Payout, whose totals are a snapshot taken at generation time.
"""
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from common.models import BaseEntity, money_field
from common.money import ZERO, split_commission, to_money


class PaymentMethod(models.TextChoices):
    CASH_ON_DELIVERY = "cash_on_delivery", "Cash on delivery"
    ONLINE = "online", "Online"
    WALLET = "wallet", "Wallet"


class PaymentGateway(models.TextChoices):
    RAZORPAY = "razorpay", "Razorpay"
    STRIPE = "stripe", "Stripe"
    PAYTM = "paytm", "Paytm"


class PaymentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"
    CANCELLED = "cancelled", "Cancelled"


PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PROCESSING, PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED},
    PaymentStatus.PROCESSING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED},
    PaymentStatus.FAILED: {PaymentStatus.PROCESSING},
}


class RefundStatus(models.TextChoices):
    NONE = "none", "None"
    INITIATED = "initiated", "Initiated"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class PayoutEligibility(models.TextChoices):
    PENDING = "pending", "Pending"
    ELIGIBLE = "eligible", "Eligible"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class Payment(BaseEntity):
    order = models.OneToOneField("orders.Order", on_delete=models.PROTECT, related_name="payment")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="payments")
    store = models.ForeignKey("stores.Store", on_delete=models.PROTECT, related_name="payments")

    amount = money_field(validators=[MinValueValidator(0)])
    commission_rate = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("10.00"),
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    commission_amount = money_field(default=Decimal("0.00"))
    store_payout_amount = money_field(default=Decimal("0.00"))

    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.CASH_ON_DELIVERY)
    payment_gateway = models.CharField(max_length=20, choices=PaymentGateway.choices, blank=True)
    status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING, db_index=True)
    transaction_id = models.CharField(max_length=120, blank=True)
    gateway_order_id = models.CharField(max_length=120, blank=True)
    gateway_response = models.JSONField(default=dict, blank=True)

    refund_amount = money_field(default=Decimal("0.00"))
    refund_status = models.CharField(max_length=20, choices=RefundStatus.choices, default=RefundStatus.NONE)
    refund_transaction_id = models.CharField(max_length=120, blank=True)
    refund_reason = models.CharField(max_length=500, blank=True)

    payout_status = models.CharField(
        max_length=20, choices=PayoutEligibility.choices, default=PayoutEligibility.PENDING, db_index=True,
    )
    payout_date = models.DateTimeField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["store", "status", "payout_status"]),
            models.Index(fields=["user", "status"]),
        ]

    def __str__(self):
        return f"Payment {self.id} ({self.status})"

    def calculate_commission(self, rate=None):
        if rate is not None:
            self.commission_rate = to_money(rate)
        self.commission_amount, self.store_payout_amount = split_commission(self.amount, self.commission_rate)
        return self.commission_amount, self.store_payout_amount

    def can_transition_to(self, target: str) -> bool:
        return target in PAYMENT_TRANSITIONS.get(self.status, set())


class PayoutStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


OPEN_PAYOUT_STATUSES = (PayoutStatus.PENDING, PayoutStatus.APPROVED, PayoutStatus.PROCESSING)


class TransferMethod(models.TextChoices):
    NEFT = "NEFT", "NEFT"
    RTGS = "RTGS", "RTGS"
    IMPS = "IMPS", "IMPS"
    UPI = "UPI", "UPI"
    WALLET = "Wallet", "Wallet"


class Payout(BaseEntity):
    store = models.ForeignKey("stores.Store", on_delete=models.PROTECT, related_name="payouts")
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="payouts")

    total_amount = money_field(default=Decimal("0.00"))
    commission_deducted = money_field(default=Decimal("0.00"))
    net_payout_amount = money_field(default=Decimal("0.00"))
    period_start = models.DateTimeField()
    period_end = models.DateTimeField(db_index=True)
    payments = models.ManyToManyField(Payment, blank=True, related_name="payouts")
    order_count = models.PositiveIntegerField(default=0)

    status = models.CharField(max_length=20, choices=PayoutStatus.choices, default=PayoutStatus.PENDING, db_index=True)
    bank_details = models.JSONField(default=dict, blank=True)  # {account_number, ifsc_code, account_holder_name, bank_name}
    transfer_id = models.CharField(max_length=120, blank=True)
    transfer_method = models.CharField(max_length=10, choices=TransferMethod.choices, default=TransferMethod.NEFT)
    transfer_response = models.JSONField(default=dict, blank=True)
    processed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+",
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.CharField(max_length=500, blank=True)
    notes = models.CharField(max_length=1000, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["owner", "status"]),
            models.Index(fields=["store", "status"]),
        ]

    def __str__(self):
        return f"Payout {self.id} ({self.status})"

    def calculate_totals(self, payments):
        """Snapshot totals from `payments`; call before linking them."""
        payments = list(payments)
        self.total_amount = to_money(sum((p.amount for p in payments), ZERO))
        self.commission_deducted = to_money(sum((p.commission_amount for p in payments), ZERO))
        self.net_payout_amount = self.total_amount - self.commission_deducted
        self.order_count = len(payments)
        return self
