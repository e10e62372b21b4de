"""
Read-only marketplace aggregates for the admin dashboard and store reports.

Money sums come from completed payments; order counts come from orders.
Every function takes an optional [start, end] window on `created_at`.
"""
from django.db.models import Avg, Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce, TruncDay, TruncMonth, TruncWeek

from apps.accounts.models import AccountStatus, Role, User
from apps.orders.models import Order, OrderStatus
from apps.payments.models import Payment, PaymentStatus
from apps.stores.models import Store, StoreStatus
from common.exceptions import Forbidden, InvalidRequest
from common.models import get_or_not_found
from common.money import ZERO, to_money
from common.principal import Principal

RECENT_ORDERS = 10
TRUNCATE = {"day": TruncDay, "week": TruncWeek, "month": TruncMonth}
MONEY = DecimalField(max_digits=14, decimal_places=2)


def _window(qs, start=None, end=None):
    if start:
        qs = qs.filter(created_at__gte=start)
    if end:
        qs = qs.filter(created_at__lte=end)
    return qs


def _money_sum(field):
    return Coalesce(Sum(field), Value(ZERO), output_field=MONEY)


def revenue(start=None, end=None, **filters) -> dict:
    payments = _window(Payment.objects.filter(status=PaymentStatus.COMPLETED, **filters), start, end)
    agg = payments.aggregate(
        total_revenue=_money_sum("amount"),
        total_commission=_money_sum("commission_amount"),
        total_payout=_money_sum("store_payout_amount"),
        average_order_value=Avg("amount"),
        order_count=Count("id"),
    )
    return {
        "total_revenue": to_money(agg["total_revenue"]),
        "total_commission": to_money(agg["total_commission"]),
        "total_payout": to_money(agg["total_payout"]),
        "average_order_value": to_money(agg["average_order_value"] or ZERO),
        "order_count": agg["order_count"],
    }


def orders_by_status(start=None, end=None, **filters) -> dict:
    counts = {s: 0 for s in OrderStatus.values}
    rows = _window(Order.objects.filter(**filters), start, end).values("status").annotate(n=Count("id"))
    for row in rows:
        counts[row["status"]] = row["n"]
    return counts


def dashboard(start=None, end=None) -> dict:
    by_status = orders_by_status(start, end)
    money = revenue(start, end)
    total_orders = sum(by_status.values())
    delivered = by_status[OrderStatus.DELIVERED]
    users = User.objects.filter(status=AccountStatus.ACTIVE)
    customers = users.filter(role=Role.CUSTOMER).count()
    owners = users.filter(role=Role.STORE_OWNER).count()

    recent = _window(Order.objects.select_related("customer", "store"), start, end).order_by("-created_at")[:RECENT_ORDERS]
    return {
        "orders": {
            "total": total_orders,
            "delivered": delivered,
            "open": total_orders - delivered - by_status[OrderStatus.CANCELLED] - by_status[OrderStatus.REJECTED],
            "by_status": by_status,
            "average_order_value": str(money["average_order_value"]),
        },
        "revenue": {
            "total": str(money["total_revenue"]),
            "commission": str(money["total_commission"]),
            "store_payouts": str(money["total_payout"]),
        },
        "users": {"customers": customers, "store_owners": owners, "total": customers + owners},
        "stores": {"active": Store.objects.filter(status=StoreStatus.ACTIVE, available=True, is_deleted=False).count()},
        "recent_orders": [
            {
                "id": str(order.id),
                "customer": order.customer.name,
                "store": order.store.store_name,
                "amount": str(order.final_price),
                "status": order.status,
                "created_at": order.created_at,
            }
            for order in recent
        ],
    }


def orders_over_time(start=None, end=None, group_by: str = "day") -> list:
    if group_by not in TRUNCATE:
        raise InvalidRequest("group_by must be one of day, week, month")
    rows = (
        _window(Order.objects.all(), start, end)
        .annotate(period=TRUNCATE[group_by]("created_at"))
        .values("period")
        .annotate(
            total_orders=Count("id"),
            delivered_orders=Count("id", filter=Q(status=OrderStatus.DELIVERED)),
            cancelled_orders=Count("id", filter=Q(status=OrderStatus.CANCELLED)),
            total_value=_money_sum("final_price"),
        )
        .order_by("period")
    )
    return [
        {
            "period": row["period"].date().isoformat() if hasattr(row["period"], "date") else str(row["period"]),
            "total_orders": row["total_orders"],
            "delivered_orders": row["delivered_orders"],
            "cancelled_orders": row["cancelled_orders"],
            "total_value": str(to_money(row["total_value"])),
        }
        for row in rows
    ]


def top_stores(*, category=None, city=None, limit: int = 10) -> list:
    completed = Q(payments__status=PaymentStatus.COMPLETED)
    qs = Store.objects.filter(status=StoreStatus.ACTIVE, is_deleted=False)
    if category:
        qs = qs.filter(category=category)
    if city:
        qs = qs.filter(city__iexact=city)
    qs = qs.annotate(
        revenue=Coalesce(Sum("payments__amount", filter=completed), Value(ZERO), output_field=MONEY),
        earnings=Coalesce(Sum("payments__store_payout_amount", filter=completed), Value(ZERO), output_field=MONEY),
        paid_orders=Count("payments", filter=completed),
    ).order_by("-revenue")[:limit]
    return [
        {
            "store_id": str(store.pk),
            "store_name": store.store_name,
            "category": store.category,
            "rating": str(store.rating),
            "total_reviews": store.total_reviews,
            "order_count": store.paid_orders,
            "total_revenue": str(to_money(store.revenue)),
            "total_earnings": str(to_money(store.earnings)),
        }
        for store in qs
    ]


def store_report(actor: Principal, store_id, start=None, end=None) -> dict:
    store = get_or_not_found(Store.objects.all(), "Store not found", pk=store_id, is_deleted=False)
    if not actor.is_admin and store.owner_id != actor.user_id:
        raise Forbidden("Not authorized to view analytics for this store")
    money = revenue(start, end, store=store)
    return {
        "store_id": str(store.pk),
        "store_name": store.store_name,
        "rating": str(store.rating),
        "total_reviews": store.total_reviews,
        "orders": orders_by_status(start, end, store=store),
        "revenue": {k: (v if isinstance(v, int) else str(v)) for k, v in money.items()},
    }


def _order_rows(qs):
    return [
        {
            "id": str(order.id),
            "customer": order.customer.name,
            "customer_email": order.customer.email,
            "store": order.store.store_name,
            "amount": str(order.final_price),
            "status": order.status,
            "created_at": order.created_at,
        }
        for order in qs.select_related("customer", "store")
    ]


def _payment_rows(qs):
    return [
        {
            "id": str(payment.id),
            "order_id": str(payment.order_id),
            "order_status": payment.order.status,
            "customer_email": payment.user.email,
            "store": payment.store.store_name,
            "amount": str(payment.amount),
            "commission": str(payment.commission_amount),
            "store_payout": str(payment.store_payout_amount),
            "status": payment.status,
            "payout_status": payment.payout_status,
            "created_at": payment.created_at,
        }
        for payment in qs.select_related("order", "user", "store")
    ]


def _store_rows(qs):
    return [
        {
            "id": str(store.id),
            "store_name": store.store_name,
            "owner_email": store.owner.email,
            "category": store.category,
            "city": store.city,
            "status": store.status,
            "rating": str(store.rating),
            "created_at": store.created_at,
        }
        for store in qs.filter(is_deleted=False).select_related("owner")
    ]


def _user_rows(qs):
    return [
        {
            "id": str(user.id),
            "name": user.name,
            "email": user.email,
            "role": user.role,
            "status": user.status,
            "created_at": user.created_at,
        }
        for user in qs
    ]


EXPORTS = {
    "orders": (Order, _order_rows),
    "payments": (Payment, _payment_rows),
    "stores": (Store, _store_rows),
    "users": (User, _user_rows),
}


def export_report(report_type: str, start=None, end=None) -> dict:
    """Rows of one entity type created inside the window, newest first."""
    if report_type not in EXPORTS:
        raise InvalidRequest("Invalid report type")
    model, rows = EXPORTS[report_type]
    data = rows(_window(model.objects.all(), start, end).order_by("-created_at"))
    return {"type": report_type, "count": len(data), report_type: data}
