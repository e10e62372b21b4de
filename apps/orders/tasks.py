import logging

from celery import shared_task
from django.db import transaction
from django.db.models import F

from apps.stores.models import Store

from .models import Order

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=2)
def record_order_sales(self, order_id):
    """Bump menu item and store sales counters for a freshly placed order."""
    try:
        order = Order.objects.prefetch_related("items__menu_item").get(id=order_id)
    except Order.DoesNotExist:
        logger.warning("record_order_sales: order %s not found", order_id)
        return
    try:
        with transaction.atomic():
            for line in order.items.all():
                if line.menu_item is not None:
                    line.menu_item.record_sale(line.quantity, line.line_total)
            Store.objects.filter(pk=order.store_id).update(times_ordered=F("times_ordered") + 1)
    except Exception as exc:
        raise self.retry(exc=exc, countdown=10)
