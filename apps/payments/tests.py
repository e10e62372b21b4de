from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from apps.accounts.models import Role
from apps.cart import services as cart_services
from apps.cart.storage import DatabaseCartBackend
from apps.orders import services as order_services
from apps.orders.models import Order, OrderStatus
from apps.promotions.models import Promotion, PromotionType
from common.exceptions import Conflict, Forbidden, InvalidRequest
from common.principal import Principal
from common.testing import client_for, make_item, make_order, make_store, make_user

from . import services
from .models import Payment, PaymentMethod, PaymentStatus, PayoutEligibility, PayoutStatus

ADDRESS = {"label": "Home", "street": "1 Park St", "city": "Bengaluru", "pincode": "560001"}


def completed_payment(order, admin) -> Payment:
    actor = Principal.from_user(admin)
    payment = services.create_payment(actor=actor, order_id=order.pk)
    return services.update_payment_status(actor=actor, payment_id=payment.pk, status=PaymentStatus.COMPLETED)


class CommissionTests(TestCase):
    def setUp(self):
        self.customer = make_user()
        self.store = make_store()

    def test_split_uses_store_rate(self):
        self.store.commission_rate = Decimal("12.5")
        self.store.save()
        order = make_order(self.customer, self.store, amount="99.99")
        payment = services.create_payment(actor=Principal.from_user(self.customer), order_id=order.pk)
        # 12.5% of 99.99 = 12.49875
        self.assertEqual(payment.commission_amount, Decimal("12.50"))
        self.assertEqual(payment.store_payout_amount, Decimal("87.49"))
        self.assertEqual(payment.commission_amount + payment.store_payout_amount, payment.amount)

    def test_default_rate_and_cod_starts_pending(self):
        order = make_order(self.customer, self.store, amount="200.00")
        payment = services.create_payment(actor=Principal.from_user(self.customer), order_id=order.pk)
        self.assertEqual(payment.commission_rate, Decimal("10.00"))
        self.assertEqual(payment.status, PaymentStatus.PENDING)

    def test_online_payment_starts_processing(self):
        order = make_order(self.customer, self.store)
        payment = services.create_payment(
            actor=Principal.from_user(self.customer), order_id=order.pk,
            payment_method=PaymentMethod.ONLINE, payment_gateway="razorpay",
        )
        self.assertEqual(payment.status, PaymentStatus.PROCESSING)

    def test_duplicate_payment_conflicts(self):
        order = make_order(self.customer, self.store)
        actor = Principal.from_user(self.customer)
        services.create_payment(actor=actor, order_id=order.pk)
        with self.assertRaisesMessage(Conflict, "Payment already exists for this order"):
            services.create_payment(actor=actor, order_id=order.pk)

    def test_other_customer_cannot_pay(self):
        order = make_order(self.customer, self.store)
        with self.assertRaises(Forbidden):
            services.create_payment(actor=Principal.from_user(make_user()), order_id=order.pk)


class PaymentStatusTests(TestCase):
    def setUp(self):
        self.admin = make_user(Role.ADMIN)
        self.actor = Principal.from_user(self.admin)
        self.order = make_order(make_user(), make_store())
        self.payment = services.create_payment(actor=self.actor, order_id=self.order.pk)

    def test_completion_confirms_order_and_marks_eligible(self):
        payment = services.update_payment_status(
            actor=self.actor, payment_id=self.payment.pk, status=PaymentStatus.COMPLETED, transaction_id="txn_1",
        )
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.CONFIRMED)
        self.assertEqual(payment.payout_status, PayoutEligibility.ELIGIBLE)
        self.assertEqual(payment.transaction_id, "txn_1")

    def test_completed_payment_cannot_move_back(self):
        services.update_payment_status(actor=self.actor, payment_id=self.payment.pk, status=PaymentStatus.COMPLETED)
        with self.assertRaises(Conflict):
            services.update_payment_status(actor=self.actor, payment_id=self.payment.pk, status=PaymentStatus.PENDING)

    def test_refund_requires_completed(self):
        with self.assertRaisesMessage(Conflict, "Payment must be completed to process refund"):
            services.refund_payment(actor=self.actor, payment_id=self.payment.pk, reason="Changed mind")

    def test_refund_cancels_order(self):
        services.update_payment_status(actor=self.actor, payment_id=self.payment.pk, status=PaymentStatus.COMPLETED)
        payment = services.refund_payment(actor=self.actor, payment_id=self.payment.pk, reason="Cold food")
        self.order.refresh_from_db()
        self.assertEqual(payment.status, PaymentStatus.REFUNDED)
        self.assertEqual(payment.payout_status, PayoutEligibility.CANCELLED)
        self.assertEqual(payment.refund_amount, payment.amount)
        self.assertEqual(self.order.status, OrderStatus.CANCELLED)
        self.assertEqual(self.order.cancellation_reason, "Cold food")

    def test_completion_refused_for_cancelled_order(self):
        Order.objects.filter(pk=self.order.pk).update(status=OrderStatus.CANCELLED)
        with self.assertRaisesMessage(Conflict, "Cannot complete payment for a Cancelled order"):
            services.update_payment_status(actor=self.actor, payment_id=self.payment.pk, status=PaymentStatus.COMPLETED)
        self.payment.refresh_from_db()
        self.assertEqual(self.payment.status, PaymentStatus.PENDING)
        self.assertEqual(self.payment.payout_status, PayoutEligibility.PENDING)

    def test_no_payment_for_rejected_order(self):
        order = make_order(make_user(), make_store(), status=OrderStatus.REJECTED)
        with self.assertRaisesMessage(Conflict, "Cannot create a payment for a Rejected order"):
            services.create_payment(actor=self.actor, order_id=order.pk)


class CheckoutToPayoutTests(TestCase):
    def test_cart_to_order_to_commission(self):
        Promotion.objects.create(
            code="WELCOME10", name="Welcome", type=PromotionType.PERCENTAGE,
            discount_value=Decimal("10"), max_discount=Decimal("100"),
            valid_from=timezone.now() - timedelta(days=1), valid_until=timezone.now() + timedelta(days=7),
        )
        customer = make_user()
        item = make_item(make_store(), price="150.00")
        backend = DatabaseCartBackend(customer.pk)
        cart_services.add_item(backend, menu_item_id=item.pk, quantity=2)
        summary = cart_services.summarize(cart_services.apply_discount(backend, code="WELCOME10"))
        self.assertEqual(summary["final_amount"], "270.00")

        actor = Principal.from_user(customer)
        order = order_services.create_order_from_cart(actor=actor, delivery_address=ADDRESS)
        self.assertEqual(order.final_price, Decimal("270.00"))

        payment = services.create_payment(actor=actor, order_id=order.pk)
        self.assertEqual(payment.commission_rate, Decimal("10.00"))
        self.assertEqual(payment.commission_amount, Decimal("27.00"))
        self.assertEqual(payment.store_payout_amount, Decimal("243.00"))


class PayoutTests(TestCase):
    def setUp(self):
        self.admin = make_user(Role.ADMIN)
        self.actor = Principal.from_user(self.admin)
        self.store = make_store()
        customer = make_user()
        self.payments = [
            completed_payment(make_order(customer, self.store, amount=amount), self.admin)
            for amount in ("100.00", "200.00", "300.00")
        ]
        self.period = {
            "period_start": timezone.now() - timedelta(days=1),
            "period_end": timezone.now() + timedelta(days=1),
        }

    def generate(self):
        return services.generate_payout(actor=self.actor, store_id=self.store.pk, **self.period)

    def test_generate_snapshots_totals(self):
        payout = self.generate()
        self.assertEqual(payout.total_amount, Decimal("600.00"))
        self.assertEqual(payout.commission_deducted, Decimal("60.00"))
        self.assertEqual(payout.net_payout_amount, Decimal("540.00"))
        self.assertEqual(payout.payments.count(), 3)
        self.assertEqual(payout.status, PayoutStatus.PENDING)

    def test_payments_are_not_batched_twice(self):
        self.generate()
        with self.assertRaisesMessage(InvalidRequest, "No eligible payments found for this period"):
            self.generate()

    def test_complete_requires_approval(self):
        payout = self.generate()
        with self.assertRaisesMessage(Conflict, "Payout must be approved before completion"):
            services.complete_payout(actor=self.actor, payout_id=payout.pk, transfer_id="UTR123")

    def test_approve_then_complete_settles_payments(self):
        payout = self.generate()
        services.approve_payout(actor=self.actor, payout_id=payout.pk)
        payout = services.complete_payout(actor=self.actor, payout_id=payout.pk, transfer_id="UTR123")
        self.assertEqual(payout.status, PayoutStatus.COMPLETED)
        for payment in Payment.objects.filter(pk__in=[p.pk for p in self.payments]):
            self.assertEqual(payment.payout_status, PayoutEligibility.COMPLETED)
            self.assertIsNotNone(payment.payout_date)

    def test_failed_payout_releases_payments(self):
        payout = self.generate()
        services.approve_payout(actor=self.actor, payout_id=payout.pk)
        services.fail_payout(actor=self.actor, payout_id=payout.pk, reason="Bank rejected transfer")
        self.assertEqual(
            Payment.objects.filter(payout_status=PayoutEligibility.ELIGIBLE, store=self.store).count(), 3,
        )
        self.assertEqual(self.generate().order_count, 3)

    def test_refund_does_not_change_existing_payout(self):
        payout = self.generate()
        services.refund_payment(actor=self.actor, payment_id=self.payments[0].pk, reason="Missing items")
        payout.refresh_from_db()
        self.assertEqual(payout.total_amount, Decimal("600.00"))

    def test_early_payout_request(self):
        owner = Principal.from_user(self.store.owner)
        payout = services.request_early_payout(actor=owner, store_id=self.store.pk)
        self.assertEqual(payout.notes, "Early payout request")
        self.assertEqual(payout.net_payout_amount, Decimal("540.00"))

    def test_early_payout_includes_old_payment_completed_late(self):
        order = make_order(make_user(), self.store, amount="100.00")
        payment = services.create_payment(actor=self.actor, order_id=order.pk)
        Payment.objects.filter(pk=payment.pk).update(created_at=timezone.now() - timedelta(days=10))
        services.update_payment_status(actor=self.actor, payment_id=payment.pk, status=PaymentStatus.COMPLETED)

        payout = services.request_early_payout(actor=Principal.from_user(self.store.owner), store_id=self.store.pk)
        self.assertEqual(payout.order_count, 4)
        self.assertEqual(payout.net_payout_amount, Decimal("630.00"))
        self.assertTrue(payout.payments.filter(pk=payment.pk).exists())
        self.assertFalse(services.eligible_payments(self.store.pk).exists())


class PaymentApiTests(TestCase):
    def test_customer_creates_payment_then_duplicate_is_409(self):
        customer = make_user()
        order = make_order(customer, make_store())
        client = client_for(customer)
        res = client.post("/api/payments", {"order_id": str(order.pk)}, format="json")
        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.data["data"]["commission_amount"], "30.00")

        res = client.post("/api/payments", {"order_id": str(order.pk)}, format="json")
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.data["error"]["type"], "conflict")

    def test_customer_cannot_change_status(self):
        customer = make_user()
        order = make_order(customer, make_store())
        payment = services.create_payment(actor=Principal.from_user(customer), order_id=order.pk)
        res = client_for(customer).patch(f"/api/payments/{payment.pk}/status", {"status": "completed"}, format="json")
        self.assertEqual(res.status_code, 403)

    def test_admin_payout_flow(self):
        admin = make_user(Role.ADMIN)
        store = make_store()
        completed_payment(make_order(make_user(), store, amount="100.00"), admin)
        client = client_for(admin)
        res = client.post("/api/admin/payouts/generate", {
            "store_id": str(store.pk),
            "period_start": (timezone.now() - timedelta(days=1)).isoformat(),
            "period_end": (timezone.now() + timedelta(days=1)).isoformat(),
        }, format="json")
        self.assertEqual(res.status_code, 201)
        payout_id = res.data["data"]["id"]

        res = client.post(f"/api/admin/payouts/{payout_id}/complete", {"transfer_id": "UTR9"}, format="json")
        self.assertEqual(res.status_code, 409)
        client.post(f"/api/admin/payouts/{payout_id}/approve")
        res = client.post(f"/api/admin/payouts/{payout_id}/complete", {"transfer_id": "UTR9"}, format="json")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["data"]["status"], "completed")

    def test_owner_sees_payout_summary(self):
        admin = make_user(Role.ADMIN)
        store = make_store()
        completed_payment(make_order(make_user(), store, amount="100.00"), admin)
        client = client_for(store.owner)
        res = client.post("/api/store-owner/payouts/request", {"store_id": str(store.pk)}, format="json")
        self.assertEqual(res.status_code, 201)
        self.assertEqual(res.data["message"], "Early payout request submitted. Waiting for admin approval.")

        res = client.get("/api/store-owner/payouts")
        self.assertEqual(res.data["pagination"]["total"], 1)
        self.assertEqual(res.data["summary"]["pending_payouts"], "90.00")
