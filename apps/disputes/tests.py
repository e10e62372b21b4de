from decimal import Decimal

from django.test import TestCase

from apps.accounts.models import Role
from apps.orders.models import OrderStatus
from apps.payments import services as payment_services
from apps.payments.models import Payment, PaymentStatus
from common.exceptions import Conflict, Forbidden, InvalidRequest
from common.principal import Principal
from common.testing import client_for, make_order, make_store, make_user

from . import services
from .models import DisputePriority, DisputeStatus, ResolutionAction


class DisputeTests(TestCase):
    def setUp(self):
        self.customer = make_user()
        self.actor = Principal.from_user(self.customer)
        self.store = make_store()
        self.order = make_order(self.customer, self.store, amount="400.00", status=OrderStatus.DELIVERED)
        self.admin = Principal.from_user(make_user(Role.ADMIN))

    def open(self):
        return services.create_dispute(
            actor=self.actor, order_id=self.order.pk, type="quality_issue",
            title="Stale bread", description="The naan was hard",
        )

    def pay(self):
        payment = payment_services.create_payment(actor=self.admin, order_id=self.order.pk)
        return payment_services.update_payment_status(
            actor=self.admin, payment_id=payment.pk, status=PaymentStatus.COMPLETED,
        )

    def test_create_records_timeline(self):
        dispute = self.open()
        self.assertEqual(dispute.status, DisputeStatus.OPEN)
        self.assertEqual(list(dispute.timeline.values_list("action", flat=True)), ["Dispute created"])

    def test_one_dispute_per_order(self):
        self.open()
        with self.assertRaisesMessage(Conflict, "Dispute already exists for this order"):
            self.open()

    def test_only_order_owner(self):
        self.actor = Principal.from_user(make_user())
        with self.assertRaises(Forbidden):
            self.open()

    def test_full_refund_resolution(self):
        self.pay()
        dispute = services.resolve_dispute(
            actor=self.admin, dispute_id=self.open().pk, action=ResolutionAction.REFUND_FULL, notes="Refunded",
        )
        self.assertEqual(dispute.status, DisputeStatus.RESOLVED)
        self.assertEqual(dispute.resolution_amount, Decimal("400.00"))
        self.assertEqual(Payment.objects.get(order=self.order).status, PaymentStatus.REFUNDED)

    def test_partial_refund_resolution(self):
        payment = self.pay()
        services.resolve_dispute(
            actor=self.admin, dispute_id=self.open().pk, action=ResolutionAction.REFUND_PARTIAL, amount=Decimal("150"),
        )
        payment.refresh_from_db()
        self.assertEqual(payment.refund_amount, Decimal("150.00"))

    def test_partial_refund_needs_amount(self):
        self.pay()
        with self.assertRaises(InvalidRequest):
            services.resolve_dispute(actor=self.admin, dispute_id=self.open().pk, action=ResolutionAction.REFUND_PARTIAL)

    def test_refund_without_payment_conflicts(self):
        with self.assertRaises(Conflict):
            services.resolve_dispute(actor=self.admin, dispute_id=self.open().pk, action=ResolutionAction.REFUND_FULL)

    def test_escalate_then_close(self):
        dispute = self.open()
        dispute = services.escalate_dispute(actor=self.admin, dispute_id=dispute.pk, notes="Repeat complaint")
        self.assertEqual(dispute.priority, DisputePriority.HIGH)
        dispute = services.close_dispute(actor=self.admin, dispute_id=dispute.pk)
        self.assertEqual(dispute.timeline.count(), 3)
        with self.assertRaises(Conflict):
            services.escalate_dispute(actor=self.admin, dispute_id=dispute.pk)


class DisputeApiTests(TestCase):
    def test_visibility(self):
        customer = make_user()
        store = make_store()
        order = make_order(customer, store)
        res = client_for(customer).post("/api/disputes", {
            "order_id": str(order.pk), "type": "delivery_issue", "title": "Late", "description": "Two hours late",
        }, format="json")
        self.assertEqual(res.status_code, 201)
        dispute_id = res.data["data"]["id"]

        self.assertEqual(client_for(store.owner).get(f"/api/disputes/{dispute_id}").status_code, 200)
        self.assertEqual(client_for(make_user()).get(f"/api/disputes/{dispute_id}").status_code, 403)

        res = client_for(store.owner).get("/api/disputes/store")
        self.assertEqual(res.data["pagination"]["total"], 1)

    def test_admin_filters_by_priority(self):
        customer = make_user()
        services.create_dispute(
            actor=Principal.from_user(customer), order_id=make_order(customer, make_store()).pk,
            type="other", title="Odd", description="Something odd",
        )
        res = client_for(make_user(Role.ADMIN)).get("/api/admin/disputes?priority=high")
        self.assertEqual(res.data["pagination"]["total"], 0)
