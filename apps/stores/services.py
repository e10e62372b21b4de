# apps/stores/services.py
import logging
from collections import OrderedDict
from typing import Optional

from django.db import transaction

from apps.accounts.models import AuditLog
from common.exceptions import Conflict, Forbidden, InvalidRequest
from common.models import get_or_not_found
from common.principal import Principal

from .models import MenuItem, PENDING_REVIEW_STATUSES, Store, StoreStatus

logger = logging.getLogger(__name__)

STORE_METADATA_FIELDS = ("category", "description", "opening_time", "closing_time", "delivery_fee", "min_order")


def get_store(store_id) -> Store:
    return get_or_not_found(Store.objects.all(), "Store not found", pk=store_id, is_deleted=False)


def get_owned_store(actor: Principal, store_id) -> Store:
    """Owner-scoped lookup; another owner's store reads as missing."""
    return get_or_not_found(
        Store.objects.all(), "Store not found or you do not have permission",
        pk=store_id, owner_id=actor.user_id, is_deleted=False,
    )


def get_menu_item(menu_item_id) -> MenuItem:
    return get_or_not_found(MenuItem.objects.select_related("store"), "Menu item not found", pk=menu_item_id, is_deleted=False)


def get_owned_menu_item(actor: Principal, menu_item_id) -> MenuItem:
    item = get_menu_item(menu_item_id)
    if item.store.owner_id != actor.user_id:
        raise Forbidden("You do not have permission to modify this menu item")
    return item


# ---------------------------------------------------------------------
# Store owner operations
# ---------------------------------------------------------------------
@transaction.atomic
def create_store(*, actor: Principal, **fields) -> Store:
    if not actor.is_store_owner:
        raise Forbidden("Only store owners can create stores")
    if Store.objects.filter(owner_id=actor.user_id, store_name=fields.get("store_name")).exists():
        raise Conflict("You already have a store with this name")
    if Store.objects.filter(license_number=fields.get("license_number")).exists():
        raise Conflict("License number already exists")

    store = Store.objects.create(owner_id=actor.user_id, **fields)
    logger.info("Store %s created by %s", store.id, actor.user_id)
    return store


@transaction.atomic
def update_store(*, actor: Principal, store_id, **fields) -> Store:
    store = get_owned_store(actor, store_id)
    license_number = fields.get("license_number")
    if license_number and Store.objects.filter(license_number=license_number).exclude(pk=store.pk).exists():
        raise Conflict("License number already exists")
    for key, value in fields.items():
        setattr(store, key, value)
    store.save()
    return store


def submit_store_for_verification(*, actor: Principal, store_id) -> Store:
    store = get_owned_store(actor, store_id)
    if store.status not in (StoreStatus.DRAFT, StoreStatus.REJECTED):
        raise Conflict(f"Store in status '{store.status}' cannot be submitted for verification")
    store.status = StoreStatus.SUBMITTED
    store.rejection_reason = ""
    store.save(update_fields=["status", "rejection_reason", "updated_at"])
    logger.info("Store %s submitted for verification", store.id)
    return store


def toggle_store_open(*, actor: Principal, store_id) -> Store:
    store = get_owned_store(actor, store_id)
    store.is_open = not store.is_open
    store.save(update_fields=["is_open", "updated_at"])
    return store


def delete_store(*, actor: Principal, store_id) -> None:
    store = get_owned_store(actor, store_id)
    store.available = False
    store.save(update_fields=["available", "updated_at"])
    store.soft_delete()


# ---------------------------------------------------------------------
# Admin verification & moderation
# ---------------------------------------------------------------------
def pending_stores():
    return Store.objects.filter(status__in=PENDING_REVIEW_STATUSES, is_deleted=False).select_related("owner")


@transaction.atomic
def approve_store(*, actor: Principal, store_id, notes: str = "") -> Store:
    store = get_store(store_id)
    store.status = StoreStatus.ACTIVE
    store.is_verified = True
    store.available = True
    store.rejection_reason = ""
    if notes:
        store.verification_notes = notes
    store.save()
    AuditLog.log(actor, "store.approve", {"store_id": str(store.id)})
    logger.info("Store %s approved by %s", store.id, actor.user_id)
    return store


@transaction.atomic
def reject_store(*, actor: Principal, store_id, reason: str = "") -> Store:
    store = get_store(store_id)
    store.status = StoreStatus.REJECTED
    store.is_verified = False
    store.available = False
    store.rejection_reason = reason or "Not specified"
    store.save()
    AuditLog.log(actor, "store.reject", {"store_id": str(store.id), "reason": store.rejection_reason})
    return store


@transaction.atomic
def suspend_store(*, actor: Principal, store_id, reason: str = "") -> Store:
    store = get_store(store_id)
    store.status = StoreStatus.SUSPENDED
    store.available = False
    store.save(update_fields=["status", "available", "updated_at"])
    AuditLog.log(actor, "store.suspend", {"store_id": str(store.id), "reason": reason})
    logger.warning("Store %s suspended by %s", store.id, actor.user_id)
    return store


@transaction.atomic
def update_store_commission(*, actor: Principal, store_id, commission_rate) -> Store:
    store = get_store(store_id)
    previous = store.commission_rate
    store.commission_rate = commission_rate
    store.save(update_fields=["commission_rate", "updated_at"])
    AuditLog.log(actor, "store.commission", {
        "store_id": str(store.id),
        "from": str(previous) if previous is not None else None,
        "to": str(commission_rate),
    })
    return store


def update_store_metadata(*, actor: Principal, store_id, **fields) -> Store:
    store = get_store(store_id)
    updates = {k: v for k, v in fields.items() if k in STORE_METADATA_FIELDS}
    if not updates:
        raise InvalidRequest(f"Provide at least one of: {', '.join(STORE_METADATA_FIELDS)}")
    for key, value in updates.items():
        setattr(store, key, value)
    store.save()
    AuditLog.log(actor, "store.metadata", {"store_id": str(store.id), "fields": sorted(updates)})
    return store


# ---------------------------------------------------------------------
# Menu
# ---------------------------------------------------------------------
@transaction.atomic
def add_menu_item(*, actor: Principal, store_id, **fields) -> MenuItem:
    store = get_owned_store(actor, store_id)
    name = fields.get("name", "").strip()
    if MenuItem.objects.filter(store=store, name__iexact=name, is_deleted=False).exists():
        raise Conflict("Menu item with this name already exists in your store")
    fields["name"] = name
    return MenuItem.objects.create(store=store, **fields)


def update_menu_item(*, actor: Principal, menu_item_id, **fields) -> MenuItem:
    item = get_owned_menu_item(actor, menu_item_id)
    name = fields.get("name")
    if name and MenuItem.objects.filter(store=item.store, name__iexact=name, is_deleted=False).exclude(pk=item.pk).exists():
        raise Conflict("Menu item with this name already exists in your store")
    for key, value in fields.items():
        setattr(item, key, value)
    item.save()
    return item


def delete_menu_item(*, actor: Principal, menu_item_id) -> None:
    item = get_owned_menu_item(actor, menu_item_id)
    item.is_available = False
    item.save(update_fields=["is_available", "updated_at"])
    item.soft_delete()


def toggle_menu_item_availability(*, actor: Principal, menu_item_id) -> MenuItem:
    item = get_owned_menu_item(actor, menu_item_id)
    item.is_available = not item.is_available
    item.save(update_fields=["is_available", "updated_at"])
    return item


def update_menu_item_stock(*, actor: Principal, menu_item_id, quantity: int, operation: str = "set") -> MenuItem:
    item = get_owned_menu_item(actor, menu_item_id)
    if operation == "increment":
        new_quantity = item.stock_quantity + quantity
    elif operation == "decrement":
        new_quantity = max(0, item.stock_quantity - quantity)
    elif operation == "set":
        new_quantity = quantity
    else:
        raise InvalidRequest("operation must be one of: set, increment, decrement")
    item.stock_quantity = new_quantity
    item.in_stock = new_quantity > 0
    item.save(update_fields=["stock_quantity", "in_stock", "updated_at"])
    return item


def disable_menu_item(*, actor: Principal, menu_item_id, reason: str = "") -> MenuItem:
    item = get_menu_item(menu_item_id)
    item.disabled_by_admin = True
    item.is_available = False
    item.save(update_fields=["disabled_by_admin", "is_available", "updated_at"])
    AuditLog.log(actor, "menu_item.disable", {"menu_item_id": str(item.id), "reason": reason})
    return item


# ---------------------------------------------------------------------
# Public catalog
# ---------------------------------------------------------------------
def public_stores(category: Optional[str] = None, city: Optional[str] = None):
    qs = Store.objects.filter(status=StoreStatus.ACTIVE, available=True, is_deleted=False)
    if category:
        qs = qs.filter(category=category)
    if city:
        qs = qs.filter(city__iexact=city)
    return qs.order_by("-rating", "-times_ordered")


def store_menu(store: Store, include_unavailable: bool = False):
    qs = store.menu_items.filter(is_deleted=False)
    if not include_unavailable:
        qs = qs.filter(is_available=True, disabled_by_admin=False)
    return qs


def group_menu_by_category(items) -> "OrderedDict[str, list]":
    grouped = OrderedDict()
    for item in items:
        grouped.setdefault(item.category, []).append(item)
    return grouped


def popular_items(store: Store, limit: int = 10):
    """Available items that have sold at least once, best sellers first."""
    return store_menu(store).filter(times_ordered__gt=0).order_by("-times_ordered", "name")[:limit]
