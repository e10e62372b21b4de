from datetime import timedelta
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from apps.promotions.models import Promotion, PromotionType
from common.exceptions import InvalidRequest
from common.testing import client_for, make_item, make_store, make_user

from . import services
from .storage import SESSION_COOKIE, CacheCartBackend, DatabaseCartBackend


def welcome10():
    return Promotion.objects.create(
        code="WELCOME10", name="Welcome", type=PromotionType.PERCENTAGE,
        discount_value=Decimal("10"), max_discount=Decimal("100"),
        valid_from=timezone.now() - timedelta(days=1), valid_until=timezone.now() + timedelta(days=7),
    )


class CartTotalsTests(TestCase):
    def setUp(self):
        self.customer = make_user()
        self.store = make_store()
        self.backend = DatabaseCartBackend(self.customer.pk)

    def test_delivery_charge_below_threshold(self):
        item = make_item(self.store, price="40.00")
        summary = services.summarize(services.add_item(self.backend, menu_item_id=item.pk, quantity=2))
        self.assertEqual(summary["items_total"], "80.00")
        self.assertEqual(summary["delivery_charge"], "25.00")
        self.assertEqual(summary["final_amount"], "105.00")

    def test_free_delivery_at_threshold_and_discount(self):
        welcome10()
        item = make_item(self.store, price="150.00")
        services.add_item(self.backend, menu_item_id=item.pk, quantity=2)
        state = services.apply_discount(self.backend, code="welcome10")
        summary = services.summarize(state)
        self.assertEqual(summary["delivery_charge"], "0.00")
        self.assertEqual(summary["discount_amount"], "30.00")
        self.assertEqual(summary["final_amount"], "270.00")

    def test_discount_follows_quantity_changes(self):
        welcome10()
        item = make_item(self.store, price="150.00")
        services.add_item(self.backend, menu_item_id=item.pk, quantity=2)
        services.apply_discount(self.backend, code="WELCOME10")
        state = services.update_quantity(self.backend, menu_item_id=item.pk, quantity=4)
        self.assertEqual(state.discount_amount, Decimal("60.00"))

    def test_one_store_per_cart(self):
        first = make_item(self.store)
        second = make_item(make_store())
        services.add_item(self.backend, menu_item_id=first.pk)
        with self.assertRaisesMessage(InvalidRequest, services.ONE_STORE_MESSAGE):
            services.add_item(self.backend, menu_item_id=second.pk)

    def test_unavailable_item_is_rejected(self):
        item = make_item(self.store, is_available=False)
        with self.assertRaises(InvalidRequest):
            services.add_item(self.backend, menu_item_id=item.pk)

    def test_clean_drops_unavailable_items(self):
        keep, gone = make_item(self.store), make_item(self.store)
        services.add_item(self.backend, menu_item_id=keep.pk)
        services.add_item(self.backend, menu_item_id=gone.pk)
        gone.is_available = False
        gone.save()
        state, removed = services.clean_cart(self.backend)
        self.assertEqual([r["menu_item_id"] for r in removed], [str(gone.pk)])
        self.assertEqual(len(state.lines), 1)


class GuestCartTests(TestCase):
    def setUp(self):
        cache.clear()
        self.store = make_store()
        self.item = make_item(self.store, price="60.00")

    def test_guest_cart_lives_in_cache(self):
        backend = CacheCartBackend("sess_abc")
        services.add_item(backend, menu_item_id=self.item.pk, quantity=3)
        self.assertIsNotNone(cache.get("cart:session:sess_abc"))
        self.assertEqual(services.get_cart(backend).lines[0].quantity, 3)

    def test_guest_gets_session_cookie(self):
        client = APIClient()
        res = client.post("/api/cart/add", {"menu_item_id": str(self.item.pk), "quantity": 2}, format="json")
        self.assertEqual(res.status_code, 200)
        self.assertIn(SESSION_COOKIE, res.cookies)
        self.assertEqual(res.data["data"]["items_total"], "120.00")

    def test_merge_into_customer_cart(self):
        customer = make_user()
        services.add_item(CacheCartBackend("sess_merge"), menu_item_id=self.item.pk, quantity=1)
        services.add_item(DatabaseCartBackend(customer.pk), menu_item_id=self.item.pk, quantity=2)

        state = services.merge_guest_cart(user_id=customer.pk, session_id="sess_merge")
        self.assertEqual(state.lines[0].quantity, 3)
        self.assertIsNone(cache.get("cart:session:sess_merge"))


class CartApiTests(TestCase):
    def test_store_owner_cannot_use_cart(self):
        owner = make_user("storeOwner")
        res = client_for(owner).get("/api/cart")
        self.assertEqual(res.status_code, 403)

    def test_apply_unknown_code_is_not_found(self):
        customer = make_user()
        item = make_item(make_store())
        client = client_for(customer)
        client.post("/api/cart/add", {"menu_item_id": str(item.pk)}, format="json")
        res = client.post("/api/cart/apply-discount", {"code": "NOPE"}, format="json")
        self.assertEqual(res.status_code, 404)
        self.assertFalse(res.data["success"])
