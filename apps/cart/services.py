"""
Cart operations.

Every mutation goes load -> change -> recompute discount -> save, so the
promo discount always reflects the current lines. Totals are derived on read
by `summarize`.
"""
import logging
from decimal import Decimal

from django.conf import settings

from apps.promotions import services as promotions
from apps.stores.models import MenuItem
from common.exceptions import InvalidRequest, ResourceNotFound
from common.models import get_or_not_found
from common.money import ZERO, to_money

from .storage import CacheCartBackend, CartLine, CartState, DatabaseCartBackend

logger = logging.getLogger(__name__)

ONE_STORE_MESSAGE = "You can only order from one store at a time. Clear cart to change store."


def backend_for(*, user_id=None, session_id=None):
    if user_id is not None:
        return DatabaseCartBackend(user_id)
    if session_id:
        return CacheCartBackend(session_id)
    raise InvalidRequest("Cart session is missing")


def delivery_charge_for(items_total: Decimal) -> Decimal:
    if items_total >= Decimal(str(settings.MARKETPLACE_FREE_DELIVERY_THRESHOLD)):
        return ZERO
    return to_money(settings.MARKETPLACE_DELIVERY_CHARGE)


def summarize(state: CartState) -> dict:
    items_total = to_money(sum((line.line_total for line in state.lines), ZERO))
    delivery = ZERO if state.free_delivery or state.is_empty else delivery_charge_for(items_total)
    final_amount = max(ZERO, items_total + delivery - state.discount_amount)
    return {
        "store_id": state.store_id,
        "store_name": state.store_name,
        "items": [
            {
                "menu_item_id": line.menu_item_id,
                "item_name": line.item_name,
                "unit_price": str(line.unit_price),
                "quantity": line.quantity,
                "line_total": str(line.line_total),
            }
            for line in state.lines
        ],
        "total_items": sum(line.quantity for line in state.lines),
        "items_total": str(items_total),
        "delivery_charge": str(delivery),
        "promo_code": state.promo_code or None,
        "discount_amount": str(state.discount_amount),
        "final_amount": str(to_money(final_amount)),
    }


def items_total(state: CartState) -> Decimal:
    return to_money(sum((line.line_total for line in state.lines), ZERO))


def _refresh_discount(state: CartState, user_id=None):
    """Re-run the attached promo code against the current lines; drop it if it no longer applies."""
    if not state.promo_code:
        return
    if state.is_empty:
        state.drop_discount()
        return
    promotion, eligibility, discount = promotions.validate_code(
        state.promo_code,
        user_id=user_id,
        order_amount=items_total(state),
        store_id=state.store_id,
        item_ids=[line.menu_item_id for line in state.lines],
    )
    if not eligibility.valid:
        logger.info("Dropping promo %s from cart: %s", state.promo_code, eligibility.reason)
        state.drop_discount()
        return
    state.discount_amount = discount
    state.free_delivery = promotions.is_free_delivery(promotion)


def _user_id(backend):
    return getattr(backend, "user_id", None)


def _commit(backend, state: CartState) -> CartState:
    if state.is_empty:
        state.reset()
    _refresh_discount(state, _user_id(backend))
    backend.save(state)
    return state


# ---------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------
def get_cart(backend) -> CartState:
    return backend.load()


def add_item(backend, *, menu_item_id, quantity: int = 1) -> CartState:
    if quantity < 1:
        raise InvalidRequest("Quantity must be at least 1")
    item = get_or_not_found(MenuItem.objects.select_related("store"), "Menu item not found", pk=menu_item_id, is_deleted=False)
    if not item.orderable:
        raise InvalidRequest("Item unavailable")

    state = backend.load()
    if state.store_id and state.store_id != str(item.store_id):
        raise InvalidRequest(ONE_STORE_MESSAGE)

    state.store_id = str(item.store_id)
    state.store_name = item.store.store_name
    line = state.line_for(item.pk)
    if line:
        line.quantity += quantity
        line.unit_price = to_money(item.price)
    else:
        state.lines.append(CartLine(
            menu_item_id=str(item.pk),
            item_name=item.name,
            unit_price=to_money(item.price),
            quantity=quantity,
        ))
    return _commit(backend, state)


def update_quantity(backend, *, menu_item_id, quantity: int) -> CartState:
    if quantity < 1:
        raise InvalidRequest("Quantity must be at least 1")
    state = backend.load()
    line = state.line_for(menu_item_id)
    if line is None:
        raise ResourceNotFound("Item not found in cart")
    line.quantity = quantity
    return _commit(backend, state)


def remove_item(backend, *, menu_item_id) -> CartState:
    state = backend.load()
    line = state.line_for(menu_item_id)
    if line is None:
        raise ResourceNotFound("Item not found in cart")
    state.lines.remove(line)
    return _commit(backend, state)


def clear_cart(backend) -> None:
    backend.clear()


def apply_discount(backend, *, code: str) -> CartState:
    state = backend.load()
    if state.is_empty:
        raise InvalidRequest("Cart is empty")
    promotion, eligibility, discount = promotions.validate_code(
        code,
        user_id=_user_id(backend),
        order_amount=items_total(state),
        store_id=state.store_id,
        item_ids=[line.menu_item_id for line in state.lines],
    )
    if promotion is None:
        raise ResourceNotFound(eligibility.reason)
    eligibility.raise_if_invalid()

    state.promo_code = promotion.code
    state.discount_amount = discount
    state.free_delivery = promotions.is_free_delivery(promotion)
    backend.save(state)
    return state


def remove_discount(backend) -> CartState:
    state = backend.load()
    state.drop_discount()
    backend.save(state)
    return state


def invalid_lines(state: CartState) -> list:
    """Lines whose menu item was deleted or can no longer be ordered."""
    ids = [line.menu_item_id for line in state.lines]
    items = {str(mi.pk): mi for mi in MenuItem.objects.filter(pk__in=ids)}
    invalid = []
    for line in state.lines:
        item = items.get(line.menu_item_id)
        if item is None or item.is_deleted:
            invalid.append({"menu_item_id": line.menu_item_id, "item_name": line.item_name, "reason": "Item not found"})
        elif not item.orderable:
            invalid.append({"menu_item_id": line.menu_item_id, "item_name": line.item_name, "reason": "Item unavailable"})
    return invalid


def clean_cart(backend):
    """Drop invalid lines. Returns (state, removed lines)."""
    state = backend.load()
    removed = invalid_lines(state)
    if removed:
        dropped = {entry["menu_item_id"] for entry in removed}
        state.lines = [line for line in state.lines if line.menu_item_id not in dropped]
        _commit(backend, state)
    return state, removed


def cart_status(backend) -> dict:
    state = backend.load()
    invalid = invalid_lines(state)
    return {
        "total_items": len(state.lines),
        "has_invalid_items": bool(invalid),
        "invalid_items_count": len(invalid),
        "invalid_items": invalid,
    }


def merge_guest_cart(*, user_id, session_id) -> CartState:
    """Fold a guest cart into the customer's cart; quantities of the same item add up."""
    user_backend = DatabaseCartBackend(user_id)
    guest_backend = CacheCartBackend(session_id)
    guest = guest_backend.load()
    state = user_backend.load()
    if guest.is_empty:
        return state

    if state.store_id and guest.store_id and state.store_id != guest.store_id:
        raise InvalidRequest("Cannot merge carts from different stores. Please clear one cart first.")

    if not state.store_id:
        state.store_id = guest.store_id
        state.store_name = guest.store_name
    for guest_line in guest.lines:
        line = state.line_for(guest_line.menu_item_id)
        if line:
            line.quantity += guest_line.quantity
        else:
            state.lines.append(guest_line)

    _commit(user_backend, state)
    guest_backend.clear()
    logger.info("Merged guest cart %s into cart of %s", session_id, user_id)
    return state
