from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from apps.accounts.models import Role
from apps.orders.models import OrderStatus
from apps.payments import services as payment_services
from apps.payments.models import PaymentStatus
from common.exceptions import Forbidden, InvalidRequest
from common.principal import Principal
from common.testing import client_for, make_order, make_store, make_user

from . import services


class AnalyticsTests(TestCase):
    def setUp(self):
        self.admin = Principal.from_user(make_user(Role.ADMIN))
        self.customer = make_user()
        self.store = make_store(commission_rate=Decimal("10.00"))
        for amount in ("100.00", "300.00"):
            order = make_order(self.customer, self.store, amount=amount, status=OrderStatus.DELIVERED)
            payment = payment_services.create_payment(actor=self.admin, order_id=order.pk)
            payment_services.update_payment_status(actor=self.admin, payment_id=payment.pk, status=PaymentStatus.COMPLETED)
        make_order(self.customer, self.store, amount="50.00", status=OrderStatus.CANCELLED)

    def test_dashboard_totals(self):
        data = services.dashboard()
        self.assertEqual(data["orders"]["total"], 3)
        self.assertEqual(data["orders"]["delivered"], 2)
        self.assertEqual(data["orders"]["open"], 0)
        self.assertEqual(data["orders"]["by_status"][OrderStatus.CANCELLED], 1)
        self.assertEqual(data["orders"]["average_order_value"], "200.00")
        self.assertEqual(data["revenue"]["total"], "400.00")
        self.assertEqual(data["revenue"]["commission"], "40.00")
        self.assertEqual(data["revenue"]["store_payouts"], "360.00")
        self.assertEqual(len(data["recent_orders"]), 3)

    def test_orders_over_time_by_day(self):
        rows = services.orders_over_time(group_by="day")
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["total_orders"], 3)
        self.assertEqual(rows[0]["delivered_orders"], 2)
        self.assertEqual(rows[0]["cancelled_orders"], 1)

    def test_unknown_grouping(self):
        with self.assertRaises(InvalidRequest):
            services.orders_over_time(group_by="year")

    def test_store_report_scoped_to_owner(self):
        report = services.store_report(Principal.from_user(self.store.owner), self.store.pk)
        self.assertEqual(report["revenue"]["total_revenue"], "400.00")
        self.assertEqual(report["revenue"]["order_count"], 2)
        with self.assertRaises(Forbidden):
            services.store_report(Principal.from_user(make_user(Role.STORE_OWNER)), self.store.pk)

    def test_top_stores_ranked_by_revenue(self):
        make_store()
        rows = services.top_stores()
        self.assertEqual(rows[0]["store_id"], str(self.store.pk))
        self.assertEqual(rows[0]["total_revenue"], "400.00")
        self.assertEqual(rows[1]["total_revenue"], "0.00")

    def test_export_orders_and_payments(self):
        orders = services.export_report("orders")
        self.assertEqual(orders["count"], 3)
        self.assertEqual(sorted(row["amount"] for row in orders["orders"]), ["100.00", "300.00", "50.00"])
        payments = services.export_report("payments")
        self.assertEqual(payments["count"], 2)
        self.assertEqual(sorted(row["commission"] for row in payments["payments"]), ["10.00", "30.00"])
        self.assertEqual({row["order_status"] for row in payments["payments"]}, {OrderStatus.DELIVERED})

    def test_export_honours_window(self):
        report = services.export_report("orders", end=timezone.now() - timedelta(days=1))
        self.assertEqual(report["count"], 0)

    def test_export_unknown_type(self):
        with self.assertRaisesMessage(InvalidRequest, "Invalid report type"):
            services.export_report("reviews")


class AnalyticsApiTests(TestCase):
    def test_dashboard_is_admin_only(self):
        self.assertEqual(client_for(make_user()).get("/api/admin/analytics/dashboard").status_code, 403)
        res = client_for(make_user(Role.ADMIN)).get("/api/admin/analytics/dashboard")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["data"]["orders"]["total"], 0)

    def test_orders_endpoint_validates_grouping(self):
        res = client_for(make_user(Role.ADMIN)).get("/api/admin/analytics/orders?group_by=year")
        self.assertEqual(res.status_code, 400)

    def test_owner_store_report(self):
        store = make_store()
        res = client_for(store.owner).get(f"/api/store-owner/analytics/{store.pk}")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["data"]["store_name"], store.store_name)
        res = client_for(make_user(Role.ADMIN)).get(f"/api/admin/analytics/stores/{store.pk}")
        self.assertEqual(res.status_code, 200)

    def test_export_endpoint(self):
        make_order(make_user(), make_store(), amount="120.00")
        client = client_for(make_user(Role.ADMIN))
        res = client.get("/api/admin/analytics/export", {"type": "orders"})
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["data"]["count"], 1)
        self.assertEqual(res.data["data"]["orders"][0]["amount"], "120.00")

        self.assertEqual(client.get("/api/admin/analytics/export", {"type": "reviews"}).status_code, 400)
        self.assertEqual(client_for(make_user()).get("/api/admin/analytics/export", {"type": "orders"}).status_code, 403)
