# apps/payments/services.py
import logging
from datetime import timedelta
from typing import Optional

from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone

from apps.accounts.models import AuditLog
from apps.orders.models import Order, OrderStatus, TERMINAL_STATUSES
from apps.stores.models import Store
from common.exceptions import Conflict, Forbidden, InvalidRequest
from common.models import get_or_not_found
from common.money import ZERO, to_money
from common.principal import Principal

from .models import (
    OPEN_PAYOUT_STATUSES,
    Payment,
    PaymentMethod,
    PaymentStatus,
    PayoutEligibility,
    Payout,
    PayoutStatus,
    RefundStatus,
)

logger = logging.getLogger(__name__)

EARLY_PAYOUT_NOTE = "Early payout request"
EARLY_PAYOUT_LOOKBACK = timedelta(days=7)
CLOSED_ORDER_STATUSES = (OrderStatus.CANCELLED, OrderStatus.REJECTED)
OPEN_PAYMENT_STATUSES = (PaymentStatus.PENDING, PaymentStatus.PROCESSING)


def totals_for(payments) -> dict:
    agg = payments.aggregate(
        total_amount=Sum("amount"),
        total_commission=Sum("commission_amount"),
        total_payout=Sum("store_payout_amount"),
        order_count=Count("id"),
    )
    return {
        "total_amount": to_money(agg["total_amount"] or ZERO),
        "total_commission": to_money(agg["total_commission"] or ZERO),
        "total_payout": to_money(agg["total_payout"] or ZERO),
        "order_count": agg["order_count"],
    }


# ---------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------
def get_payment(payment_id) -> Payment:
    return get_or_not_found(Payment.objects.select_related("order", "store", "user"), "Payment not found", pk=payment_id)


def get_payment_for(actor: Principal, payment_id) -> Payment:
    payment = get_payment(payment_id)
    allowed = (
        actor.is_admin
        or payment.user_id == actor.user_id
        or (actor.is_store_owner and payment.store.owner_id == actor.user_id)
    )
    if not allowed:
        raise Forbidden("Not authorized to view this payment")
    return payment


@transaction.atomic
def create_payment(*, actor: Principal, order_id, payment_method=PaymentMethod.CASH_ON_DELIVERY, payment_gateway="") -> Payment:
    order = get_or_not_found(Order.objects.select_for_update().select_related("store"), "Order not found", pk=order_id)
    if not (actor.is_admin or order.customer_id == actor.user_id):
        raise Forbidden("Not authorized to pay for this order")
    if order.status in CLOSED_ORDER_STATUSES:
        raise Conflict(f"Cannot create a payment for a {order.status} order")
    if Payment.objects.filter(order=order).exists():
        raise Conflict("Payment already exists for this order")

    payment = Payment(
        order=order,
        user_id=order.customer_id,
        store=order.store,
        amount=to_money(order.final_price),
        payment_method=payment_method,
        payment_gateway=payment_gateway or "",
        status=PaymentStatus.PENDING if payment_method == PaymentMethod.CASH_ON_DELIVERY else PaymentStatus.PROCESSING,
    )
    payment.calculate_commission(order.store.effective_commission_rate())
    payment.save()
    logger.info(
        "Payment %s created for order %s: amount=%s commission=%s payout=%s",
        payment.id, order.id, payment.amount, payment.commission_amount, payment.store_payout_amount,
    )
    return payment


@transaction.atomic
def update_payment_status(
    *,
    actor: Principal,
    payment_id,
    status: str,
    transaction_id: str = "",
    gateway_order_id: str = "",
    gateway_response: Optional[dict] = None,
) -> Payment:
    """
    Advance a payment. Completing it makes it payout-eligible and confirms a
    Pending order, both in this transaction.
    """
    if status not in PaymentStatus.values:
        raise InvalidRequest("Invalid payment status")
    payment = get_or_not_found(Payment.objects.select_for_update(), "Payment not found", pk=payment_id)
    if not payment.can_transition_to(status):
        raise Conflict(f"Cannot change payment status from {payment.status} to {status}")

    payment.status = status
    if transaction_id:
        payment.transaction_id = transaction_id
    if gateway_order_id:
        payment.gateway_order_id = gateway_order_id
    if gateway_response:
        payment.gateway_response = gateway_response

    if status == PaymentStatus.COMPLETED:
        order_status = Order.objects.filter(pk=payment.order_id).values_list("status", flat=True).first()
        if order_status in CLOSED_ORDER_STATUSES:
            raise Conflict(f"Cannot complete payment for a {order_status} order")
        payment.payout_status = PayoutEligibility.ELIGIBLE
        confirmed = Order.objects.filter(pk=payment.order_id, status=OrderStatus.PENDING).update(
            status=OrderStatus.CONFIRMED, updated_at=timezone.now(),
        )
        logger.info("Payment %s completed (order confirmed: %s)", payment.id, bool(confirmed))
    payment.save()
    AuditLog.log(actor, "payment.status", {"payment_id": str(payment.id), "status": status})
    return payment


def void_open_payment(order_id) -> Optional[Payment]:
    """
    Cancel the pending or processing payment of an order that was cancelled or
    rejected, so it can never become payout-eligible. Callers hold the transaction.
    """
    payment = Payment.objects.select_for_update().filter(order_id=order_id, status__in=OPEN_PAYMENT_STATUSES).first()
    if payment is None:
        return None
    payment.status = PaymentStatus.CANCELLED
    payment.payout_status = PayoutEligibility.CANCELLED
    payment.save(update_fields=["status", "payout_status", "updated_at"])
    logger.info("Payment %s cancelled with order %s", payment.id, order_id)
    return payment


def apply_refund(payment: Payment, *, reason: str = "", refund_transaction_id: str = "") -> Payment:
    """Mark a completed payment refunded. Callers hold the transaction and the row lock."""
    if payment.status != PaymentStatus.COMPLETED:
        raise Conflict("Payment must be completed to process refund")
    payment.status = PaymentStatus.REFUNDED
    payment.payout_status = PayoutEligibility.CANCELLED
    payment.refund_amount = payment.amount
    payment.refund_reason = reason
    if refund_transaction_id:
        payment.refund_transaction_id = refund_transaction_id
        payment.refund_status = RefundStatus.COMPLETED
    else:
        payment.refund_status = RefundStatus.INITIATED
    payment.save()
    logger.info("Payment %s refunded (%s)", payment.id, payment.refund_amount)
    return payment


@transaction.atomic
def refund_payment(*, actor: Principal, payment_id, reason: str = "", refund_transaction_id: str = "", amount=None) -> Payment:
    """
    Refund a completed payment and cancel its order in one transaction.
    `amount` lets dispute resolution refund part of the payment.
    """
    payment = get_or_not_found(Payment.objects.select_for_update(), "Payment not found", pk=payment_id)
    apply_refund(payment, reason=reason, refund_transaction_id=refund_transaction_id)
    if amount is not None:
        amount = to_money(amount)
        if amount <= ZERO or amount > payment.amount:
            raise InvalidRequest("Refund amount must be between 0 and the payment amount")
        payment.refund_amount = amount
        payment.save(update_fields=["refund_amount", "updated_at"])

    order = Order.objects.select_for_update().get(pk=payment.order_id)
    if order.status != OrderStatus.CANCELLED:
        order.status = OrderStatus.CANCELLED
        order.cancellation_reason = reason or order.cancellation_reason
        order.cancelled_at = timezone.now()
        order.save()
    AuditLog.log(actor, "payment.refund", {
        "payment_id": str(payment.id), "order_id": str(order.id),
        "amount": str(payment.refund_amount), "reason": reason,
    })
    return payment


def user_payments(actor: Principal, status: Optional[str] = None):
    qs = Payment.objects.filter(user_id=actor.user_id).select_related("order", "store")
    if status:
        qs = qs.filter(status=status)
    return qs.order_by("-created_at")


def store_payments(actor: Principal, status: Optional[str] = None, payout_status: Optional[str] = None, store_id=None):
    qs = Payment.objects.filter(store__owner_id=actor.user_id).select_related("order", "store", "user")
    if store_id:
        qs = qs.filter(store_id=store_id)
    if status:
        qs = qs.filter(status=status)
    if payout_status:
        qs = qs.filter(payout_status=payout_status)
    return qs.order_by("-created_at")


def all_payments(*, status=None, payout_status=None, store_id=None, user_id=None):
    qs = Payment.objects.select_related("order", "store", "user")
    filters = {"status": status, "payout_status": payout_status, "store_id": store_id, "user_id": user_id}
    qs = qs.filter(**{k: v for k, v in filters.items() if v})
    return qs.order_by("-created_at")


def _owned_store(actor: Principal, store_id) -> Store:
    return get_or_not_found(
        Store.objects.all(), "Store not found or unauthorized", pk=store_id, owner_id=actor.user_id, is_deleted=False,
    )


def eligible_payments(store_id, period_start=None, period_end=None):
    """Completed, payout-eligible payments not already held by an open payout."""
    qs = Payment.objects.filter(
        store_id=store_id, status=PaymentStatus.COMPLETED, payout_status=PayoutEligibility.ELIGIBLE,
    ).exclude(payouts__status__in=OPEN_PAYOUT_STATUSES)
    if period_start:
        qs = qs.filter(created_at__gte=period_start)
    if period_end:
        qs = qs.filter(created_at__lte=period_end)
    return qs.order_by("created_at")


def eligible_summary(actor: Principal, store_id) -> dict:
    store = _owned_store(actor, store_id)
    payments = eligible_payments(store.pk)
    return {"payments": payments, "summary": totals_for(payments)}


# ---------------------------------------------------------------------
# Payouts
# ---------------------------------------------------------------------
def _create_payout(*, store: Store, payments, period_start, period_end, notes: str = "", bank_details=None) -> Payout:
    payments = list(payments.select_for_update())
    if not payments:
        raise InvalidRequest("No eligible payments found for this period")

    payout = Payout(
        store=store,
        owner_id=store.owner_id,
        period_start=period_start,
        period_end=period_end,
        notes=notes,
        bank_details=bank_details or {},
    )
    payout.calculate_totals(payments)
    payout.save()
    payout.payments.set(payments)
    Payment.objects.filter(pk__in=[p.pk for p in payments]).update(
        payout_status=PayoutEligibility.PROCESSING, updated_at=timezone.now(),
    )
    logger.info(
        "Payout %s generated for store %s: %s payments, net %s",
        payout.id, store.pk, payout.order_count, payout.net_payout_amount,
    )
    return payout


@transaction.atomic
def generate_payout(*, actor: Principal, store_id, period_start, period_end, notes: str = "", bank_details=None) -> Payout:
    if period_end <= period_start:
        raise InvalidRequest("period_end must be after period_start")
    store = get_or_not_found(Store.objects.all(), "Store not found", pk=store_id)
    payout = _create_payout(
        store=store,
        payments=eligible_payments(store.pk, period_start, period_end),
        period_start=period_start, period_end=period_end, notes=notes, bank_details=bank_details,
    )
    AuditLog.log(actor, "payout.generate", {"payout_id": str(payout.id), "store_id": str(store.pk)})
    return payout


@transaction.atomic
def request_early_payout(*, actor: Principal, store_id, notes: str = "") -> Payout:
    """
    Batch every eligible payment of the store, whenever it was created. The
    period (last payout end or 7 days back, to now) is only recorded.
    """
    store = _owned_store(actor, store_id)
    last = Payout.objects.filter(store=store).order_by("-period_end").first()
    now = timezone.now()
    period_start = last.period_end if last else now - EARLY_PAYOUT_LOOKBACK
    return _create_payout(
        store=store,
        payments=eligible_payments(store.pk),
        period_start=period_start,
        period_end=now,
        notes=notes or EARLY_PAYOUT_NOTE,
    )


def _lock_payout(payout_id) -> Payout:
    return get_or_not_found(Payout.objects.select_for_update(), "Payout not found", pk=payout_id)


@transaction.atomic
def approve_payout(*, actor: Principal, payout_id) -> Payout:
    payout = _lock_payout(payout_id)
    if payout.status != PayoutStatus.PENDING:
        raise Conflict("Payout must be pending to approve")
    payout.status = PayoutStatus.APPROVED
    payout.processed_by_id = actor.user_id
    payout.save()
    AuditLog.log(actor, "payout.approve", {"payout_id": str(payout.id)})
    return payout


@transaction.atomic
def complete_payout(*, actor: Principal, payout_id, transfer_id: str, transfer_response=None, transfer_method=None) -> Payout:
    """Close an approved payout and settle every payment it holds, atomically."""
    if not transfer_id:
        raise InvalidRequest("transfer_id is required")
    payout = _lock_payout(payout_id)
    if payout.status != PayoutStatus.APPROVED:
        raise Conflict("Payout must be approved before completion")

    now = timezone.now()
    payout.status = PayoutStatus.COMPLETED
    payout.transfer_id = transfer_id
    payout.transfer_response = transfer_response or {}
    if transfer_method:
        payout.transfer_method = transfer_method
    payout.processed_by_id = actor.user_id
    payout.processed_at = now
    payout.save()
    payout.payments.update(payout_status=PayoutEligibility.COMPLETED, payout_date=now, updated_at=now)

    AuditLog.log(actor, "payout.complete", {"payout_id": str(payout.id), "transfer_id": transfer_id})
    logger.info("Payout %s completed (transfer %s)", payout.id, transfer_id)
    return payout


@transaction.atomic
def fail_payout(*, actor: Principal, payout_id, reason: str = "") -> Payout:
    payout = _lock_payout(payout_id)
    if payout.status not in (PayoutStatus.APPROVED, PayoutStatus.PROCESSING):
        raise Conflict(f"Payout in status '{payout.status}' cannot be failed")
    payout.status = PayoutStatus.FAILED
    payout.failure_reason = reason
    payout.processed_at = timezone.now()
    payout.save()
    payout.payments.filter(payout_status=PayoutEligibility.PROCESSING).update(
        payout_status=PayoutEligibility.ELIGIBLE, updated_at=timezone.now(),
    )
    AuditLog.log(actor, "payout.fail", {"payout_id": str(payout.id), "reason": reason})
    logger.warning("Payout %s failed: %s", payout.id, reason)
    return payout


def get_payout_for(actor: Principal, payout_id) -> Payout:
    payout = get_or_not_found(Payout.objects.select_related("store", "owner"), "Payout not found", pk=payout_id)
    if not actor.is_admin and payout.owner_id != actor.user_id:
        raise Forbidden("Not authorized to view this payout")
    return payout


def owner_payouts(actor: Principal, status: Optional[str] = None):
    qs = Payout.objects.filter(owner_id=actor.user_id).select_related("store")
    if status:
        qs = qs.filter(status=status)
    return qs.order_by("-created_at")


def owner_payout_summary(actor: Principal) -> dict:
    qs = Payout.objects.filter(owner_id=actor.user_id)
    completed = qs.filter(status=PayoutStatus.COMPLETED)
    return {
        "total_earnings": to_money(completed.aggregate(s=Sum("net_payout_amount"))["s"] or ZERO),
        "pending_payouts": to_money(
            qs.filter(status__in=OPEN_PAYOUT_STATUSES).aggregate(s=Sum("net_payout_amount"))["s"] or ZERO
        ),
        "completed_count": completed.count(),
    }


def all_payouts(*, status=None, store_id=None):
    qs = Payout.objects.select_related("store", "owner")
    if status:
        qs = qs.filter(status=status)
    if store_id:
        qs = qs.filter(store_id=store_id)
    return qs.order_by("-created_at")


def earnings_statement(actor: Principal, *, store_id=None, start=None, end=None) -> dict:
    if store_id:
        _owned_store(actor, store_id)
    qs = Payment.objects.filter(store__owner_id=actor.user_id, status=PaymentStatus.COMPLETED)
    if store_id:
        qs = qs.filter(store_id=store_id)
    if start:
        qs = qs.filter(created_at__gte=start)
    if end:
        qs = qs.filter(created_at__lte=end)
    return {
        "payments": qs.select_related("order", "store", "user").order_by("-created_at"),
        "summary": totals_for(qs),
        "period": {"start": start, "end": end},
    }
