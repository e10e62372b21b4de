import logging
from decimal import ROUND_HALF_UP, Decimal

from celery import shared_task
from django.db.models import Avg, Count

from apps.stores.models import Store

from .models import Review, ReviewStatus

logger = logging.getLogger(__name__)


def refresh_store_rating(store_id) -> dict:
    """Average of active reviews, one decimal, written to the store row."""
    agg = Review.objects.filter(store_id=store_id, status=ReviewStatus.ACTIVE, is_deleted=False).aggregate(
        average=Avg("store_rating"), total=Count("id"),
    )
    average = agg["average"] or 0
    rating = Decimal(str(average)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    Store.objects.filter(pk=store_id).update(rating=rating, total_reviews=agg["total"])
    return {"rating": rating, "total_reviews": agg["total"]}


@shared_task(bind=True, max_retries=2)
def recompute_store_rating(self, store_id):
    try:
        result = refresh_store_rating(store_id)
    except Exception as exc:
        raise self.retry(exc=exc, countdown=10)
    logger.info("Store %s rating is now %s over %s reviews", store_id, result["rating"], result["total_reviews"])
    return {"rating": str(result["rating"]), "total_reviews": result["total_reviews"]}
