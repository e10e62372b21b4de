"""
Promotion engine: eligibility, discount calculation and redemption.

Eligibility checks run in a fixed order and the first failure is reported:
active flag, validity window, global cap, per-user cap, minimum order amount,
then scope (store / category / item).
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from django.db import transaction
from django.db.models import Count, F, Q, Sum
from django.utils import timezone

from apps.accounts.models import AuditLog
from common.exceptions import Conflict, InvalidRequest, ResourceNotFound
from common.models import get_or_not_found
from common.money import ZERO, to_money
from common.principal import Principal

from .models import Promotion, PromotionScope, PromotionType, PromotionUsage

logger = logging.getLogger(__name__)

# Reasons that mean the code ran out rather than never applied.
EXHAUSTED_REASONS = ("usage_limit", "already_used")


@dataclass
class Eligibility:
    valid: bool
    reason: Optional[str] = None
    kind: Optional[str] = None

    @classmethod
    def ok(cls) -> "Eligibility":
        return cls(valid=True)

    @classmethod
    def fail(cls, kind: str, reason: str) -> "Eligibility":
        return cls(valid=False, reason=reason, kind=kind)

    def raise_if_invalid(self):
        if self.valid:
            return
        if self.kind in EXHAUSTED_REASONS:
            raise Conflict(self.reason)
        raise InvalidRequest(self.reason)


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def find_by_code(code: str, *, for_update: bool = False) -> Promotion:
    qs = Promotion.objects.filter(is_deleted=False)
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(code=normalize_code(code))
    except Promotion.DoesNotExist:
        raise ResourceNotFound("Promotion code not found")


def usage_count_for_user(promotion: Promotion, user_id) -> int:
    return PromotionUsage.objects.filter(promotion=promotion, user_id=user_id).count()


def check_eligibility(
    promotion: Promotion,
    *,
    user_id=None,
    order_amount=ZERO,
    store_id=None,
    categories: Iterable[str] = (),
    item_ids: Iterable = (),
    now=None,
) -> Eligibility:
    if not promotion.is_active:
        return Eligibility.fail("inactive", "Promotion is not active")

    if not promotion.is_live(now or timezone.now()):
        return Eligibility.fail("window", "Promotion is not valid at this time")

    if promotion.is_exhausted:
        return Eligibility.fail("usage_limit", "Promotion usage limit exceeded")

    if user_id is not None and usage_count_for_user(promotion, user_id) >= promotion.max_uses_per_user:
        return Eligibility.fail("already_used", "You have already used this promotion")

    if to_money(order_amount) < to_money(promotion.min_order_amount):
        return Eligibility.fail("min_order", f"Minimum order amount of ₹{to_money(promotion.min_order_amount)} required")

    scope = promotion.applicable_to
    if scope == PromotionScope.STORE and store_id is not None:
        if not promotion.stores.filter(pk=store_id).exists():
            return Eligibility.fail("scope", "Promotion not applicable to this store")
    elif scope == PromotionScope.CATEGORY:
        wanted = set(categories or ())
        if wanted and not wanted.intersection(promotion.categories or ()):
            return Eligibility.fail("scope", "Promotion not applicable to this category")
    elif scope == PromotionScope.ITEM:
        wanted = {str(i) for i in (item_ids or ())}
        if wanted and not wanted.intersection(str(i) for i in (promotion.item_ids or ())):
            return Eligibility.fail("scope", "Promotion not applicable to these items")

    return Eligibility.ok()


def validate_code(code: str, *, user_id=None, order_amount=ZERO, store_id=None, categories=(), item_ids=()):
    """
    Read-only check used by the validate endpoint and the cart.
    Returns (promotion or None, Eligibility, discount).
    """
    try:
        promotion = find_by_code(code)
    except ResourceNotFound as exc:
        return None, Eligibility.fail("not_found", exc.message), ZERO

    eligibility = check_eligibility(
        promotion, user_id=user_id, order_amount=order_amount,
        store_id=store_id, categories=categories, item_ids=item_ids,
    )
    discount = promotion.calculate_discount(order_amount) if eligibility.valid else ZERO
    return promotion, eligibility, discount


@transaction.atomic
def redeem(
    code: str,
    *,
    user_id,
    order_amount,
    store_id=None,
    categories=(),
    item_ids=(),
    order=None,
):
    """
    Validate and consume one use of a promotion as a single unit.

    The row is locked for the duration of the transaction and the counter is
    bumped with `used_count < max_uses` in the UPDATE itself, so of two
    concurrent redemptions of the last use only one commits.
    Returns (promotion, discount, usage).
    """
    promotion = find_by_code(code, for_update=True)
    eligibility = check_eligibility(
        promotion, user_id=user_id, order_amount=order_amount,
        store_id=store_id, categories=categories, item_ids=item_ids,
    )
    eligibility.raise_if_invalid()

    counter = Promotion.objects.filter(pk=promotion.pk)
    if promotion.max_uses is not None:
        counter = counter.filter(used_count__lt=promotion.max_uses)
    if counter.update(used_count=F("used_count") + 1) == 0:
        raise Conflict("Promotion usage limit exceeded")

    discount = promotion.calculate_discount(order_amount)
    usage = PromotionUsage.objects.create(
        promotion=promotion, user_id=user_id, order=order, discount_applied=discount,
    )
    promotion.refresh_from_db(fields=["used_count"])
    logger.info("Promotion %s redeemed by %s (discount %s)", promotion.code, user_id, discount)
    return promotion, discount, usage


# ---------------------------------------------------------------------
# Admin management
# ---------------------------------------------------------------------
IMMUTABLE_FIELDS = ("code", "used_count")


@transaction.atomic
def create_promotion(*, actor: Principal, stores=None, **fields) -> Promotion:
    code = normalize_code(fields.pop("code", ""))
    if Promotion.objects.filter(code=code).exists():
        raise Conflict("Promotion code already exists")
    promotion = Promotion.objects.create(code=code, created_by_id=actor.user_id, **fields)
    if stores:
        promotion.stores.set(stores)
    AuditLog.log(actor, "promotion.create", {"promotion_id": str(promotion.id), "code": promotion.code})
    return promotion


@transaction.atomic
def update_promotion(*, actor: Principal, promotion_id, stores=None, **fields) -> Promotion:
    promotion = get_promotion(promotion_id)
    for name in IMMUTABLE_FIELDS:
        if name in fields:
            raise InvalidRequest(f"'{name}' cannot be changed")
    for key, value in fields.items():
        setattr(promotion, key, value)
    promotion.save()
    if stores is not None:
        promotion.stores.set(stores)
    AuditLog.log(actor, "promotion.update", {"promotion_id": str(promotion.id), "fields": sorted(fields)})
    return promotion


def toggle_promotion(*, actor: Principal, promotion_id) -> Promotion:
    promotion = get_promotion(promotion_id)
    promotion.is_active = not promotion.is_active
    promotion.save(update_fields=["is_active", "updated_at"])
    AuditLog.log(actor, "promotion.toggle", {"promotion_id": str(promotion.id), "is_active": promotion.is_active})
    return promotion


def delete_promotion(*, actor: Principal, promotion_id) -> None:
    promotion = get_promotion(promotion_id)
    if promotion.used_count > 0 or promotion.usages.exists():
        raise Conflict("Cannot delete a promotion that has been used. Deactivate it instead.")
    AuditLog.log(actor, "promotion.delete", {"promotion_id": str(promotion.id), "code": promotion.code})
    promotion.delete()


def get_promotion(promotion_id) -> Promotion:
    return get_or_not_found(Promotion.objects.filter(is_deleted=False), "Promotion not found", pk=promotion_id)


def active_promotions(*, city: Optional[str] = None, store_id=None):
    now = timezone.now()
    qs = Promotion.objects.filter(is_active=True, is_deleted=False, valid_from__lte=now, valid_until__gte=now)
    if store_id:
        qs = qs.filter(Q(applicable_to=PromotionScope.ALL) | Q(applicable_to=PromotionScope.STORE, stores__pk=store_id))
    qs = qs.distinct().order_by("-created_at")
    if city:
        # city_filter is a JSON list; an empty list means every city
        return [p for p in qs if not p.city_filter or city in p.city_filter]
    return list(qs)


def promotion_stats(promotion: Promotion) -> dict:
    agg = promotion.usages.aggregate(
        total_discount=Sum("discount_applied"),
        unique_users=Count("user", distinct=True),
    )
    usage_rate = None
    if promotion.max_uses:
        usage_rate = to_money(Decimal(promotion.used_count) * 100 / Decimal(promotion.max_uses))
    return {
        "code": promotion.code,
        "name": promotion.name,
        "used_count": promotion.used_count,
        "max_uses": promotion.max_uses,
        "total_discount": to_money(agg["total_discount"] or ZERO),
        "unique_users": agg["unique_users"],
        "usage_rate": usage_rate,
    }


def is_free_delivery(promotion: Optional[Promotion]) -> bool:
    return promotion is not None and promotion.type == PromotionType.FREE_DELIVERY
