# apps/orders/services.py
import logging
from collections import OrderedDict
from typing import Optional

from django.db import transaction
from django.utils import timezone

from apps.accounts.models import AuditLog, User
from apps.cart.storage import DatabaseCartBackend
from apps.payments import services as payment_services
from apps.payments.models import Payment, PaymentStatus
from apps.promotions import services as promotions
from apps.stores.models import MenuItem
from common.exceptions import Conflict, Forbidden, InvalidRequest, ResourceNotFound
from common.models import get_or_not_found
from common.money import ZERO, to_money
from common.principal import Principal

from . import fraud
from .models import CUSTOMER_CANCELLABLE, Order, OrderItem, OrderStatus
from .tasks import record_order_sales

logger = logging.getLogger(__name__)

ADMIN_CANCEL_REASON = "Cancelled by admin"


def _collect_lines(items):
    """
    Resolve `[{menu_item, quantity}]` against the catalog.
    The first item decides the store; repeated items are folded together.
    """
    if not items:
        raise InvalidRequest("Order must contain at least one item")

    quantities = OrderedDict()
    for entry in items:
        key = str(entry["menu_item"])
        quantities[key] = quantities.get(key, 0) + int(entry.get("quantity", 1))

    ids = list(quantities)
    catalog = {
        str(mi.pk): mi
        for mi in MenuItem.objects.select_related("store").filter(pk__in=ids, is_deleted=False)
    }
    first = catalog.get(ids[0])
    if first is None:
        raise ResourceNotFound("Menu item not found")
    store = first.store
    if not store.accepts_orders:
        raise InvalidRequest("Store is not accepting orders right now")

    lines = []
    for item_id, quantity in quantities.items():
        item = catalog.get(item_id)
        if item is None:
            raise ResourceNotFound("Menu item not found")
        if item.store_id != store.pk:
            raise InvalidRequest("All items in an order must come from the same store")
        if not item.orderable:
            raise InvalidRequest(f"{item.name} is currently unavailable")
        if quantity < 1:
            raise InvalidRequest("Quantity must be at least 1")
        lines.append((item, quantity))
    return store, lines


@transaction.atomic
def create_order(*, actor: Principal, items, delivery_address: dict, promo_code: Optional[str] = None) -> Order:
    if not actor.is_customer:
        raise Forbidden("Only customers can create orders")
    store, lines = _collect_lines(items)
    subtotal = to_money(sum((to_money(item.price) * qty for item, qty in lines), ZERO))

    customer = User.objects.select_for_update().get(pk=actor.user_id)
    report = fraud.evaluate(customer=customer, amount=subtotal)
    fraud.enforce(report)

    order = Order.objects.create(
        customer=customer,
        store=store,
        subtotal=subtotal,
        final_price=subtotal,
        delivery_address=delivery_address,
        fraud_flags=[f.as_dict() for f in report.recorded],
    )
    OrderItem.objects.bulk_create([
        OrderItem(order=order, menu_item=item, item_name=item.name, quantity=qty, unit_price=to_money(item.price))
        for item, qty in lines
    ])

    if promo_code:
        promotion, discount, _usage = promotions.redeem(
            promo_code,
            user_id=customer.pk,
            order_amount=subtotal,
            store_id=store.pk,
            categories=sorted({item.category for item, _ in lines}),
            item_ids=[item.pk for item, _ in lines],
            order=order,
        )
        order.discount = discount
        order.promo_code = promotion.code
        order.final_price = to_money(subtotal - discount)
        order.save(update_fields=["discount", "promo_code", "final_price", "updated_at"])

    if order.final_price <= ZERO:
        raise InvalidRequest("Order total must be greater than zero")

    fraud.record_signals(report, order=order)
    transaction.on_commit(lambda: record_order_sales.delay(str(order.id)))
    logger.info("Order %s placed by %s at store %s for %s", order.id, customer.pk, store.pk, order.final_price)
    return order


@transaction.atomic
def create_order_from_cart(*, actor: Principal, delivery_address: dict) -> Order:
    backend = DatabaseCartBackend(actor.user_id)
    state = backend.load()
    if state.is_empty:
        raise InvalidRequest("Cart is empty")
    if not delivery_address:
        raise InvalidRequest("Delivery address is required")

    order = create_order(
        actor=actor,
        items=[{"menu_item": line.menu_item_id, "quantity": line.quantity} for line in state.lines],
        delivery_address=delivery_address,
        promo_code=state.promo_code or None,
    )
    backend.clear()
    return order


# ---------------------------------------------------------------------
# Status changes
# ---------------------------------------------------------------------
def _lock_order(order_id) -> Order:
    return get_or_not_found(Order.objects.select_for_update().select_related("store"), "Order not found", pk=order_id)


def _apply_status(order: Order, status: str, reason: str = "") -> Order:
    now = timezone.now()
    order.status = status
    if status == OrderStatus.REJECTED:
        order.rejection_reason = reason or order.rejection_reason
    elif status == OrderStatus.CANCELLED:
        order.cancellation_reason = reason or order.cancellation_reason
        order.cancelled_at = now
    elif status == OrderStatus.DELIVERED:
        order.delivered_at = now
    order.save()
    if status in (OrderStatus.CANCELLED, OrderStatus.REJECTED):
        payment_services.void_open_payment(order.pk)
    return order


def _check_status_value(status: str):
    if status not in OrderStatus.values:
        raise InvalidRequest("Invalid order status")


@transaction.atomic
def transition_order(*, actor: Principal, order_id, status: str, reason: str = "", store_scoped: bool = True) -> Order:
    """
    Move an order along the transition table.

    The store-scoped variant is for the owner of the order's store; the
    unscoped one for admin and delivery staff.
    """
    _check_status_value(status)
    order = _lock_order(order_id)

    if store_scoped:
        if order.store.owner_id != actor.user_id:
            raise Forbidden("Not authorized to update orders for this store")
    elif not (actor.is_admin or actor.is_delivery):
        raise Forbidden("Only admin or delivery staff can update this order")

    if not order.can_transition_to(status):
        raise Conflict(f"Cannot change order status from {order.status} to {status}")

    previous = order.status
    _apply_status(order, status, reason)
    logger.info("Order %s: %s -> %s by %s", order.id, previous, status, actor.user_id)
    return order


@transaction.atomic
def cancel_order(*, actor: Principal, order_id, reason: str = "") -> Order:
    order = get_or_not_found(Order.objects.select_for_update(), "Order not found", pk=order_id, customer_id=actor.user_id)
    if order.status not in CUSTOMER_CANCELLABLE:
        raise Conflict("Order cannot be cancelled at this stage")
    _apply_status(order, OrderStatus.CANCELLED, reason)
    logger.info("Order %s cancelled by customer %s", order.id, actor.user_id)
    return order


@transaction.atomic
def admin_cancel_order(*, actor: Principal, order_id, reason: str = ""):
    """
    Cancel from any non-final state and refund a completed payment in the same
    transaction. Returns (order, refunded payment or None).
    """
    order = _lock_order(order_id)
    if order.status in (OrderStatus.CANCELLED, OrderStatus.REJECTED):
        raise Conflict(f"Order is already {order.status}")

    reason = reason or ADMIN_CANCEL_REASON
    _apply_status(order, OrderStatus.CANCELLED, reason)

    payment = Payment.objects.select_for_update().filter(order=order, status=PaymentStatus.COMPLETED).first()
    if payment is not None:
        payment_services.apply_refund(payment, reason=reason)

    AuditLog.log(actor, "order.admin_cancel", {
        "order_id": str(order.id),
        "reason": reason,
        "refunded_payment_id": str(payment.id) if payment else None,
    })
    logger.warning("Order %s force-cancelled by admin %s", order.id, actor.user_id)
    return order, payment


# ---------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------
def _with_lines(qs):
    return qs.select_related("store", "customer").prefetch_related("items")


def customer_orders(actor: Principal, status: Optional[str] = None):
    qs = Order.objects.filter(customer_id=actor.user_id)
    if status:
        qs = qs.filter(status=status)
    return _with_lines(qs).order_by("-created_at")


def store_orders(actor: Principal, status: Optional[str] = None, store_id=None):
    qs = Order.objects.filter(store__owner_id=actor.user_id)
    if store_id:
        qs = qs.filter(store_id=store_id)
    if status:
        qs = qs.filter(status=status)
    return _with_lines(qs).order_by("-created_at")


def all_orders(status: Optional[str] = None, store_id=None, customer_id=None):
    qs = Order.objects.all()
    if status:
        qs = qs.filter(status=status)
    if store_id:
        qs = qs.filter(store_id=store_id)
    if customer_id:
        qs = qs.filter(customer_id=customer_id)
    return _with_lines(qs).order_by("-created_at")


def get_order_for(actor: Principal, order_id) -> Order:
    order = get_or_not_found(_with_lines(Order.objects.all()), "Order not found", pk=order_id)
    allowed = (
        actor.is_admin
        or actor.is_delivery
        or order.customer_id == actor.user_id
        or (actor.is_store_owner and order.store.owner_id == actor.user_id)
    )
    if not allowed:
        raise Forbidden("Not authorized to view this order")
    return order
