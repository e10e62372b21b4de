# Fraud heuristics run synchronously before an order is persisted.
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List

from django.db.models import Avg
from django.utils import timezone

from apps.accounts.models import AccountStatus
from common.exceptions import Forbidden, FraudBlocked

from .models import FraudSeverity, FraudSignal, Order, OrderStatus

logger = logging.getLogger(__name__)

MAX_CANCELLED_24H = 3
MAX_ORDERS_1H = 10
MAX_REJECTED_7D = 5
ABNORMAL_AMOUNT_MULTIPLIER = Decimal("5")

SEVERITY_SCORES = {FraudSeverity.MEDIUM: 0.5, FraudSeverity.HIGH: 1.0}


@dataclass
class FraudFlag:
    rule: str
    severity: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {"rule": self.rule, "severity": self.severity, "message": self.message, **self.details}


@dataclass
class FraudReport:
    flags: List[FraudFlag] = field(default_factory=list)

    @property
    def blocking(self) -> List[FraudFlag]:
        return [f for f in self.flags if f.severity == FraudSeverity.HIGH]

    @property
    def recorded(self) -> List[FraudFlag]:
        return [f for f in self.flags if f.severity != FraudSeverity.HIGH]


def evaluate(*, customer, amount: Decimal, now=None) -> FraudReport:
    """
    Score a prospective order against the customer's recent history.
    Suspended accounts are refused outright; everything else becomes a flag.
    """
    if customer.status == AccountStatus.SUSPENDED:
        raise Forbidden("Your account is suspended. Contact support.")

    now = now or timezone.now()
    history = Order.objects.filter(customer=customer)
    report = FraudReport()

    cancelled = history.filter(status=OrderStatus.CANCELLED, created_at__gte=now - timedelta(hours=24)).count()
    if cancelled > MAX_CANCELLED_24H:
        report.flags.append(FraudFlag(
            "excessive_cancellations", FraudSeverity.HIGH,
            "Too many cancelled orders in the last 24 hours", {"count": cancelled},
        ))

    average = history.aggregate(avg=Avg("final_price"))["avg"]
    if average and amount > Decimal(average) * ABNORMAL_AMOUNT_MULTIPLIER:
        report.flags.append(FraudFlag(
            "abnormal_order_value", FraudSeverity.MEDIUM,
            "Order amount is unusually high for this customer",
            {"amount": str(amount), "average": str(round(Decimal(average), 2))},
        ))

    recent = history.filter(created_at__gte=now - timedelta(hours=1)).count()
    if recent > MAX_ORDERS_1H:
        report.flags.append(FraudFlag(
            "order_velocity", FraudSeverity.HIGH,
            "Too many orders placed in the last hour", {"count": recent},
        ))

    rejected = history.filter(status=OrderStatus.REJECTED, created_at__gte=now - timedelta(days=7)).count()
    if rejected > MAX_REJECTED_7D:
        report.flags.append(FraudFlag(
            "frequent_rejections", FraudSeverity.MEDIUM,
            "Many orders rejected in the last 7 days", {"count": rejected},
        ))

    for flag in report.flags:
        logger.warning("Fraud flag %s (%s) for customer %s", flag.rule, flag.severity, customer.pk)
    return report


def enforce(report: FraudReport) -> None:
    if report.blocking:
        raise FraudBlocked(
            "Order blocked due to suspicious activity. Contact support.",
            flags=[f.as_dict() for f in report.blocking],
        )


def record_signals(report: FraudReport, *, order: Order) -> None:
    FraudSignal.objects.bulk_create([
        FraudSignal(
            entity_id=order.pk,
            user_id=order.customer_id,
            severity=flag.severity,
            score=SEVERITY_SCORES.get(flag.severity, 0.0),
            rule=flag.rule,
            details=flag.as_dict(),
        )
        for flag in report.recorded
    ])
