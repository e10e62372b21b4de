from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from apps.accounts.models import Role
from apps.orders.models import OrderStatus
from common.exceptions import Conflict, Forbidden, InvalidRequest
from common.principal import Principal
from common.testing import client_for, make_order, make_store, make_user

from . import services
from .models import Review, ReviewStatus


class ReviewRulesTests(TestCase):
    def setUp(self):
        self.customer = make_user()
        self.actor = Principal.from_user(self.customer)
        self.store = make_store()
        self.order = make_order(self.customer, self.store, status=OrderStatus.DELIVERED)

    def test_only_delivered_orders(self):
        pending = make_order(self.customer, self.store)
        with self.assertRaisesMessage(InvalidRequest, "Can only review delivered orders"):
            services.create_review(actor=self.actor, order_id=pending.pk, store_rating=4)

    def test_one_review_per_order(self):
        services.create_review(actor=self.actor, order_id=self.order.pk, store_rating=4)
        with self.assertRaises(Conflict):
            services.create_review(actor=self.actor, order_id=self.order.pk, store_rating=5)

    def test_someone_elses_order(self):
        with self.assertRaises(Forbidden):
            services.create_review(actor=Principal.from_user(make_user()), order_id=self.order.pk, store_rating=4)

    def test_edit_window_closes(self):
        review = services.create_review(actor=self.actor, order_id=self.order.pk, store_rating=4)
        Review.objects.filter(pk=review.pk).update(editable_until=timezone.now() - timedelta(minutes=1))
        with self.assertRaises(Conflict):
            services.update_review(actor=self.actor, review_id=review.pk, store_rating=1)

    def test_rating_is_recomputed_on_commit(self):
        other = make_order(self.customer, self.store, status=OrderStatus.DELIVERED)
        with self.captureOnCommitCallbacks(execute=True):
            services.create_review(actor=self.actor, order_id=self.order.pk, store_rating=5)
        with self.captureOnCommitCallbacks(execute=True):
            services.create_review(actor=self.actor, order_id=other.pk, store_rating=4)
        self.store.refresh_from_db()
        self.assertEqual(self.store.rating, Decimal("4.5"))
        self.assertEqual(self.store.total_reviews, 2)

    def test_helpful_counts_once_per_user(self):
        review = services.create_review(actor=self.actor, order_id=self.order.pk, store_rating=4)
        reader = Principal.from_user(make_user())
        services.mark_helpful(actor=reader, review_id=review.pk)
        review = services.mark_helpful(actor=reader, review_id=review.pk)
        self.assertEqual(review.helpful_count, 1)

    def test_report_flags_review(self):
        review = services.create_review(actor=self.actor, order_id=self.order.pk, store_rating=1)
        review = services.report_review(actor=Principal.from_user(make_user()), review_id=review.pk, reason="spam")
        self.assertEqual(review.status, ReviewStatus.REPORTED)

    def test_store_owner_responds_once(self):
        review = services.create_review(actor=self.actor, order_id=self.order.pk, store_rating=3)
        owner = Principal.from_user(self.store.owner)
        services.respond_to_review(actor=owner, review_id=review.pk, response="Thanks, we'll do better")
        with self.assertRaises(Conflict):
            services.respond_to_review(actor=owner, review_id=review.pk, response="Again")

    def test_admin_hides_review(self):
        review = services.create_review(actor=self.actor, order_id=self.order.pk, store_rating=2)
        admin = Principal.from_user(make_user(Role.ADMIN))
        services.moderate_review(actor=admin, review_id=review.pk, status=ReviewStatus.HIDDEN, notes="abusive")
        self.assertFalse(services.store_reviews(self.store.pk).exists())


class ReviewApiTests(TestCase):
    def test_create_and_list_publicly(self):
        customer = make_user()
        store = make_store()
        order = make_order(customer, store, status=OrderStatus.DELIVERED)
        res = client_for(customer).post("/api/reviews", {
            "order_id": str(order.pk), "store_rating": 5, "store_comment": "Great biryani",
        }, format="json")
        self.assertEqual(res.status_code, 201)

        res = self.client.get(f"/api/reviews/store/{store.pk}?sort=highest")
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body["pagination"]["total"], 1)
        self.assertEqual(body["summary"]["distribution"]["5"], 1)

    def test_rating_out_of_range(self):
        customer = make_user()
        order = make_order(customer, make_store(), status=OrderStatus.DELIVERED)
        res = client_for(customer).post("/api/reviews", {"order_id": str(order.pk), "store_rating": 6}, format="json")
        self.assertEqual(res.status_code, 400)

    def test_customer_cannot_moderate(self):
        res = client_for(make_user()).get("/api/admin/reviews")
        self.assertEqual(res.status_code, 403)
