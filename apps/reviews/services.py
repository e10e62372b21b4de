# apps/reviews/services.py
import logging

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from apps.accounts.models import AuditLog
from apps.orders.models import Order, OrderStatus
from common.exceptions import Conflict, Forbidden, InvalidRequest
from common.models import get_or_not_found
from common.principal import Principal

from .models import Review, ReviewReport, ReviewStatus
from .tasks import recompute_store_rating

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("store_rating", "store_comment", "item_ratings", "delivery_rating", "delivery_comment")
STORE_SORTS = {
    "newest": ("-created_at",),
    "oldest": ("created_at",),
    "highest": ("-store_rating", "-created_at"),
    "lowest": ("store_rating", "-created_at"),
    "helpful": ("-helpful_count", "-created_at"),
}
VISIBILITY_CHANGES = (ReviewStatus.HIDDEN, ReviewStatus.DELETED, ReviewStatus.ACTIVE)


def _schedule_rating(store_id):
    transaction.on_commit(lambda: recompute_store_rating.delay(str(store_id)))


def get_review(review_id) -> Review:
    return get_or_not_found(Review.objects.select_related("store", "user"), "Review not found", pk=review_id, is_deleted=False)


@transaction.atomic
def create_review(*, actor: Principal, order_id, **fields) -> Review:
    if not actor.is_customer:
        raise Forbidden("Only customers can create reviews")
    order = get_or_not_found(Order.objects.select_for_update(), "Order not found", pk=order_id)
    if order.customer_id != actor.user_id:
        raise Forbidden("Order does not belong to you")
    if order.status != OrderStatus.DELIVERED:
        raise InvalidRequest("Can only review delivered orders")
    if Review.objects.filter(order=order).exists():
        raise Conflict("Review already exists for this order")

    try:
        with transaction.atomic():
            review = Review.objects.create(order=order, user_id=actor.user_id, store_id=order.store_id, **fields)
    except IntegrityError:
        raise Conflict("Review already exists for this order")
    _schedule_rating(order.store_id)
    logger.info("Review %s created for order %s (%s/5)", review.id, order.id, review.store_rating)
    return review


@transaction.atomic
def update_review(*, actor: Principal, review_id, **fields) -> Review:
    review = get_or_not_found(Review.objects.select_for_update(), "Review not found", pk=review_id, is_deleted=False)
    if review.user_id != actor.user_id:
        raise Forbidden("Not authorized to update this review")
    if not review.is_editable:
        raise Conflict("Review can only be edited within 24 hours")
    for name in EDITABLE_FIELDS:
        if name in fields:
            setattr(review, name, fields[name])
    review.save()
    _schedule_rating(review.store_id)
    return review


def store_reviews(store_id, sort: str = "newest"):
    order_by = STORE_SORTS.get(sort, STORE_SORTS["newest"])
    return (
        Review.objects.filter(store_id=store_id, status=ReviewStatus.ACTIVE, is_deleted=False)
        .select_related("user")
        .order_by(*order_by)
    )


def user_reviews(actor: Principal):
    return Review.objects.filter(user_id=actor.user_id, is_deleted=False).select_related("store", "order").order_by("-created_at")


def all_reviews(*, status=None, store_id=None, user_id=None):
    qs = Review.objects.filter(is_deleted=False).select_related("store", "user", "order")
    filters = {"status": status, "store_id": store_id, "user_id": user_id}
    return qs.filter(**{k: v for k, v in filters.items() if v}).order_by("-created_at")


@transaction.atomic
def respond_to_review(*, actor: Principal, review_id, response: str) -> Review:
    review = get_or_not_found(
        Review.objects.select_for_update().select_related("store"), "Review not found", pk=review_id, is_deleted=False,
    )
    if review.store.owner_id != actor.user_id:
        raise Forbidden("Not authorized to respond to this review")
    if review.store_response:
        raise Conflict("This review already has a response")
    review.store_response = response
    review.responded_at = timezone.now()
    review.responded_by_id = actor.user_id
    review.save(update_fields=["store_response", "responded_at", "responded_by", "updated_at"])
    return review


@transaction.atomic
def report_review(*, actor: Principal, review_id, reason: str) -> Review:
    """One report per user; the first report flags an active review for moderation."""
    review = get_or_not_found(Review.objects.select_for_update(), "Review not found", pk=review_id, is_deleted=False)
    _report, created = ReviewReport.objects.get_or_create(review=review, user_id=actor.user_id, defaults={"reason": reason})
    if created and review.status == ReviewStatus.ACTIVE:
        review.status = ReviewStatus.REPORTED
        review.save(update_fields=["status", "updated_at"])
        _schedule_rating(review.store_id)
        logger.warning("Review %s reported by %s (%s)", review.id, actor.user_id, reason)
    return review


@transaction.atomic
def mark_helpful(*, actor: Principal, review_id) -> Review:
    review = get_or_not_found(Review.objects.select_for_update(), "Review not found", pk=review_id, is_deleted=False)
    if not review.helpful_users.filter(pk=actor.user_id).exists():
        review.helpful_users.add(actor.user_id)
        Review.objects.filter(pk=review.pk).update(helpful_count=F("helpful_count") + 1)
        review.refresh_from_db()
    return review


@transaction.atomic
def moderate_review(*, actor: Principal, review_id, status: str, notes: str = "") -> Review:
    """Admin hide, restore or delete. Deleting is soft."""
    if status not in VISIBILITY_CHANGES:
        raise InvalidRequest("Invalid status")
    review = get_or_not_found(Review.objects.select_for_update(), "Review not found", pk=review_id, is_deleted=False)
    review.status = status
    review.moderation_notes = notes
    review.moderated_by_id = actor.user_id
    if status == ReviewStatus.DELETED:
        review.is_deleted = True
    review.save()
    _schedule_rating(review.store_id)
    AuditLog.log(actor, "review.moderate", {"review_id": str(review.id), "status": status, "notes": notes})
    return review


def review_summary(store_id) -> dict:
    qs = store_reviews(store_id)
    distribution = {str(star): 0 for star in range(5, 0, -1)}
    for rating in qs.values_list("store_rating", flat=True):
        distribution[str(rating)] += 1
    return {"total": sum(distribution.values()), "distribution": distribution}
