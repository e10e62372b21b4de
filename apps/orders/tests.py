from decimal import Decimal
from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase

from apps.accounts.models import AccountStatus, Role
from apps.payments import services as payment_services
from apps.payments.models import PaymentMethod, PaymentStatus, PayoutEligibility
from apps.stores.models import Store
from common.exceptions import Conflict, Forbidden, FraudBlocked, InvalidRequest
from common.principal import Principal
from common.testing import client_for, make_item, make_order, make_store, make_user

from . import fraud, services, tasks
from .models import FraudSignal, OrderStatus

ADDRESS = {"label": "Home", "street": "1 Park St", "city": "Bengaluru", "pincode": "560001"}


class CreateOrderTests(TestCase):
    def setUp(self):
        self.customer = make_user()
        self.actor = Principal.from_user(self.customer)
        self.store = make_store()

    def place(self, *lines, **kwargs):
        items = [{"menu_item": item.pk, "quantity": qty} for item, qty in lines]
        return services.create_order(actor=self.actor, items=items, delivery_address=ADDRESS, **kwargs)

    def test_prices_are_snapshotted(self):
        item = make_item(self.store, price="120.00")
        order = self.place((item, 2))
        item.price = Decimal("999.00")
        item.save()
        order.refresh_from_db()
        self.assertEqual(order.final_price, Decimal("240.00"))
        self.assertEqual(order.final_price, order.computed_final_price())
        self.assertEqual(order.items.get().unit_price, Decimal("120.00"))

    def test_items_must_share_a_store(self):
        with self.assertRaisesMessage(InvalidRequest, "All items in an order must come from the same store"):
            self.place((make_item(self.store), 1), (make_item(make_store()), 1))

    def test_unavailable_item_is_rejected(self):
        item = make_item(self.store, is_available=False)
        with self.assertRaises(InvalidRequest):
            self.place((item, 1))

    def test_only_customers_order(self):
        self.actor = Principal.from_user(make_user(Role.STORE_OWNER))
        with self.assertRaises(Forbidden):
            self.place((make_item(self.store), 1))


class FraudTests(TestCase):
    def setUp(self):
        self.customer = make_user()
        self.store = make_store()
        self.item = make_item(self.store, price="100.00")

    def place(self, quantity=1):
        return services.create_order(
            actor=Principal.from_user(self.customer),
            items=[{"menu_item": self.item.pk, "quantity": quantity}],
            delivery_address=ADDRESS,
        )

    def test_many_recent_cancellations_block(self):
        for _ in range(4):
            make_order(self.customer, self.store, status=OrderStatus.CANCELLED)
        with self.assertRaises(FraudBlocked) as ctx:
            self.place()
        self.assertEqual(ctx.exception.flags[0]["rule"], "excessive_cancellations")

    def test_three_cancellations_are_tolerated(self):
        for _ in range(3):
            make_order(self.customer, self.store, status=OrderStatus.CANCELLED)
        self.assertEqual(self.place().status, OrderStatus.PENDING)

    def test_first_order_is_never_abnormal(self):
        report = fraud.evaluate(customer=self.customer, amount=Decimal("5000"))
        self.assertEqual(report.flags, [])

    def test_abnormal_amount_is_recorded_not_blocked(self):
        make_order(self.customer, self.store, amount="100.00", status=OrderStatus.DELIVERED)
        order = self.place(quantity=6)
        self.assertEqual(order.fraud_flags[0]["rule"], "abnormal_order_value")
        self.assertTrue(FraudSignal.objects.filter(entity_id=order.pk, rule="abnormal_order_value").exists())

    def test_suspended_customer_is_refused(self):
        self.customer.status = AccountStatus.SUSPENDED
        self.customer.save()
        with self.assertRaisesMessage(Forbidden, "Your account is suspended"):
            self.place()

    def test_blocked_order_over_api_is_403(self):
        for _ in range(4):
            make_order(self.customer, self.store, status=OrderStatus.CANCELLED)
        res = client_for(self.customer).post("/api/customer/orders", {
            "items": [{"menu_item": str(self.item.pk), "quantity": 1}],
            "delivery_address": ADDRESS,
        }, format="json")
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.data["error"]["type"], "fraud")


class TransitionTests(TestCase):
    def setUp(self):
        self.store = make_store()
        self.owner = Principal.from_user(self.store.owner)
        self.admin = Principal.from_user(make_user(Role.ADMIN))
        self.customer = make_user()
        self.order = make_order(self.customer, self.store)

    def test_store_owner_walks_the_happy_path(self):
        for target in (OrderStatus.CONFIRMED, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED):
            order = services.transition_order(actor=self.owner, order_id=self.order.pk, status=target)
        self.assertEqual(order.status, OrderStatus.DELIVERED)
        self.assertIsNotNone(order.delivered_at)

    def test_terminal_state_cannot_move(self):
        self.order.status = OrderStatus.DELIVERED
        self.order.save()
        with self.assertRaisesMessage(Conflict, "Cannot change order status from Delivered to Cancelled"):
            services.transition_order(
                actor=self.admin, order_id=self.order.pk, status=OrderStatus.CANCELLED, store_scoped=False,
            )

    def test_pending_cannot_skip_to_delivered(self):
        with self.assertRaises(Conflict):
            services.transition_order(actor=self.owner, order_id=self.order.pk, status=OrderStatus.DELIVERED)

    def test_other_store_owner_is_forbidden(self):
        stranger = Principal.from_user(make_user(Role.STORE_OWNER))
        with self.assertRaisesMessage(Forbidden, "Not authorized to update orders for this store"):
            services.transition_order(actor=stranger, order_id=self.order.pk, status=OrderStatus.CONFIRMED)

    def test_rejection_keeps_reason(self):
        order = services.transition_order(
            actor=self.owner, order_id=self.order.pk, status=OrderStatus.REJECTED, reason="Out of paneer",
        )
        self.assertEqual(order.rejection_reason, "Out of paneer")

    def test_customer_cancel_only_early(self):
        actor = Principal.from_user(self.customer)
        self.order.status = OrderStatus.OUT_FOR_DELIVERY
        self.order.save()
        with self.assertRaisesMessage(Conflict, "Order cannot be cancelled at this stage"):
            services.cancel_order(actor=actor, order_id=self.order.pk)

    def test_admin_cancel_refunds_completed_payment(self):
        payment = payment_services.create_payment(actor=self.admin, order_id=self.order.pk)
        payment_services.update_payment_status(actor=self.admin, payment_id=payment.pk, status=PaymentStatus.COMPLETED)
        order, refunded = services.admin_cancel_order(actor=self.admin, order_id=self.order.pk)
        self.assertEqual(order.status, OrderStatus.CANCELLED)
        self.assertEqual(order.cancellation_reason, "Cancelled by admin")
        self.assertEqual(refunded.status, PaymentStatus.REFUNDED)

    def test_customer_cancel_voids_open_payment(self):
        payment = payment_services.create_payment(actor=Principal.from_user(self.customer), order_id=self.order.pk)
        services.cancel_order(actor=Principal.from_user(self.customer), order_id=self.order.pk)
        payment.refresh_from_db()
        self.assertEqual(payment.status, PaymentStatus.CANCELLED)
        self.assertEqual(payment.payout_status, PayoutEligibility.CANCELLED)
        with self.assertRaises(Conflict):
            payment_services.update_payment_status(
                actor=self.admin, payment_id=payment.pk, status=PaymentStatus.COMPLETED,
            )

    def test_rejection_voids_processing_payment(self):
        payment = payment_services.create_payment(
            actor=self.admin, order_id=self.order.pk, payment_method=PaymentMethod.ONLINE, payment_gateway="razorpay",
        )
        services.transition_order(actor=self.owner, order_id=self.order.pk, status=OrderStatus.REJECTED)
        payment.refresh_from_db()
        self.assertEqual(payment.status, PaymentStatus.CANCELLED)
        self.assertFalse(payment_services.eligible_payments(self.store.pk).exists())

    def test_admin_cancel_twice_conflicts(self):
        services.admin_cancel_order(actor=self.admin, order_id=self.order.pk)
        with self.assertRaises(Conflict):
            services.admin_cancel_order(actor=self.admin, order_id=self.order.pk)


class SalesCounterTests(TestCase):
    def setUp(self):
        self.store = make_store()
        self.dosa = make_item(self.store, price="80.00")
        self.vada = make_item(self.store, price="40.00")
        self.order = services.create_order(
            actor=Principal.from_user(make_user()),
            items=[{"menu_item": self.dosa.pk, "quantity": 2}, {"menu_item": self.vada.pk, "quantity": 1}],
            delivery_address=ADDRESS,
        )

    def test_counters_bump_once_per_order(self):
        tasks.record_order_sales(str(self.order.pk))
        self.dosa.refresh_from_db()
        self.store.refresh_from_db()
        self.assertEqual(self.dosa.times_ordered, 2)
        self.assertEqual(self.dosa.total_revenue, Decimal("160.00"))
        self.assertEqual(self.store.times_ordered, 1)

    def test_failed_store_update_rolls_back_item_counters(self):
        with patch.object(Store.objects, "filter", side_effect=DatabaseError("store row locked")):
            with self.assertRaises(DatabaseError):
                tasks.record_order_sales(str(self.order.pk))
        for item in (self.dosa, self.vada):
            item.refresh_from_db()
            self.assertEqual(item.times_ordered, 0)
            self.assertEqual(item.total_revenue, Decimal("0.00"))

class OrderApiTests(TestCase):
    def setUp(self):
        self.customer = make_user()
        self.store = make_store()
        self.item = make_item(self.store, price="75.00")

    def test_place_and_read_order(self):
        client = client_for(self.customer)
        res = client.post("/api/customer/orders", {
            "items": [{"menu_item": str(self.item.pk), "quantity": 2}],
            "delivery_address": ADDRESS,
        }, format="json")
        self.assertEqual(res.status_code, 201)
        order_id = res.data["data"]["id"]
        self.assertEqual(res.data["data"]["final_price"], "150.00")

        res = client.get(f"/api/orders/{order_id}")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(len(res.data["data"]["items"]), 1)

        res = client_for(make_user()).get(f"/api/orders/{order_id}")
        self.assertEqual(res.status_code, 403)

    def test_empty_cart_checkout_fails(self):
        res = client_for(self.customer).post("/api/customer/orders/from-cart", {"delivery_address": ADDRESS}, format="json")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["error"]["message"], "Cart is empty")

    def test_store_owner_lists_and_updates(self):
        order = make_order(self.customer, self.store)
        client = client_for(self.store.owner)
        res = client.get("/api/store-owner/orders")
        self.assertEqual(res.data["pagination"]["total"], 1)
        res = client.patch(f"/api/store-owner/orders/{order.pk}/status", {"status": "Confirmed"}, format="json")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["data"]["status"], "Confirmed")

    def test_customer_cannot_use_unscoped_status(self):
        order = make_order(self.customer, self.store)
        res = client_for(self.customer).put(f"/api/orders/{order.pk}/status", {"status": "Confirmed"}, format="json")
        self.assertEqual(res.status_code, 403)
