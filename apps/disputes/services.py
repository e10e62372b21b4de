# apps/disputes/services.py
import logging

from django.db import transaction
from django.utils import timezone

from apps.accounts.models import AuditLog
from apps.orders.models import Order
from apps.payments import services as payment_services
from apps.payments.models import Payment, PaymentStatus
from common.exceptions import Conflict, Forbidden, InvalidRequest
from common.models import get_or_not_found
from common.money import to_money
from common.principal import Principal

from .models import REFUND_ACTIONS, Dispute, DisputePriority, DisputeStatus, ResolutionAction

logger = logging.getLogger(__name__)

DEFAULT_REFUND_REASON = "Dispute resolution"


def _dispute_qs():
    return Dispute.objects.select_related("order", "store", "user", "resolved_by").prefetch_related("timeline")


def _filtered(qs, **filters):
    return qs.filter(**{k: v for k, v in filters.items() if v}).order_by("-created_at")


@transaction.atomic
def create_dispute(*, actor: Principal, order_id, type: str, title: str, description: str, attachments=None) -> Dispute:
    if not actor.is_customer:
        raise Forbidden("Only customers can create disputes")
    order = get_or_not_found(Order.objects.select_for_update(), "Order not found", pk=order_id)
    if order.customer_id != actor.user_id:
        raise Forbidden("Order does not belong to you")
    if Dispute.objects.filter(order=order).exists():
        raise Conflict("Dispute already exists for this order")

    dispute = Dispute.objects.create(
        order=order,
        user_id=actor.user_id,
        store_id=order.store_id,
        type=type,
        title=title,
        description=description,
        attachments=list(attachments or []),
    )
    dispute.add_event("Dispute created", actor.user_id, "Customer created dispute")
    logger.info("Dispute %s opened on order %s (%s)", dispute.id, order.id, type)
    return dispute


def my_disputes(actor: Principal, *, status=None, type=None):
    return _filtered(_dispute_qs().filter(user_id=actor.user_id), status=status, type=type)


def store_disputes(actor: Principal, *, status=None, type=None):
    return _filtered(_dispute_qs().filter(store__owner_id=actor.user_id), status=status, type=type)


def all_disputes(*, status=None, priority=None, type=None):
    return _filtered(_dispute_qs(), status=status, priority=priority, type=type)


def get_dispute_for(actor: Principal, dispute_id) -> Dispute:
    dispute = get_or_not_found(_dispute_qs(), "Dispute not found", pk=dispute_id)
    allowed = (
        actor.is_admin
        or dispute.user_id == actor.user_id
        or (actor.is_store_owner and dispute.store.owner_id == actor.user_id)
    )
    if not allowed:
        raise Forbidden("Not authorized to view this dispute")
    return dispute


def _lock_open(dispute_id) -> Dispute:
    dispute = get_or_not_found(Dispute.objects.select_for_update(), "Dispute not found", pk=dispute_id)
    if dispute.is_final:
        raise Conflict(f"Dispute is already {dispute.status}")
    return dispute


@transaction.atomic
def resolve_dispute(*, actor: Principal, dispute_id, action: str, amount=None, notes: str = "") -> Dispute:
    """
    Close a dispute with an outcome. Refund outcomes refund the order's
    completed payment in the same transaction.
    """
    if action not in ResolutionAction.values:
        raise InvalidRequest("Invalid resolution action")
    if action == ResolutionAction.REFUND_PARTIAL and amount is None:
        raise InvalidRequest("amount is required for a partial refund")
    dispute = _lock_open(dispute_id)

    payment = None
    if action in REFUND_ACTIONS:
        payment = Payment.objects.filter(order_id=dispute.order_id, status=PaymentStatus.COMPLETED).first()
        if payment is None:
            raise Conflict("No completed payment to refund for this order")
        payment = payment_services.refund_payment(
            actor=actor,
            payment_id=payment.pk,
            reason=notes or DEFAULT_REFUND_REASON,
            amount=amount if action == ResolutionAction.REFUND_PARTIAL else None,
        )
        amount = payment.refund_amount

    dispute.status = DisputeStatus.RESOLVED
    dispute.resolution_action = action
    dispute.resolution_amount = to_money(amount) if amount is not None else None
    dispute.resolution_notes = notes
    dispute.resolved_at = timezone.now()
    dispute.resolved_by_id = actor.user_id
    dispute.save()
    dispute.add_event("Dispute resolved", actor.user_id, notes)

    AuditLog.log(actor, "dispute.resolve", {
        "dispute_id": str(dispute.id),
        "action": action,
        "amount": str(dispute.resolution_amount) if dispute.resolution_amount is not None else None,
        "payment_id": str(payment.id) if payment else None,
    })
    logger.info("Dispute %s resolved with %s", dispute.id, action)
    return dispute


@transaction.atomic
def escalate_dispute(*, actor: Principal, dispute_id, notes: str = "") -> Dispute:
    dispute = _lock_open(dispute_id)
    dispute.status = DisputeStatus.ESCALATED
    dispute.priority = DisputePriority.HIGH
    dispute.save(update_fields=["status", "priority", "updated_at"])
    dispute.add_event("Dispute escalated", actor.user_id, notes)
    AuditLog.log(actor, "dispute.escalate", {"dispute_id": str(dispute.id)})
    return dispute


@transaction.atomic
def close_dispute(*, actor: Principal, dispute_id, notes: str = "") -> Dispute:
    dispute = _lock_open(dispute_id)
    dispute.status = DisputeStatus.CLOSED
    dispute.save(update_fields=["status", "updated_at"])
    dispute.add_event("Dispute closed", actor.user_id, notes)
    AuditLog.log(actor, "dispute.close", {"dispute_id": str(dispute.id)})
    return dispute
