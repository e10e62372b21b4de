from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from apps.accounts.models import Role
from common.exceptions import Conflict, InvalidRequest, ResourceNotFound
from common.principal import Principal
from common.testing import client_for, make_store, make_user

from . import services
from .models import Promotion, PromotionScope, PromotionType, PromotionUsage


def make_promotion(**extra) -> Promotion:
    defaults = {
        "code": "WELCOME10",
        "name": "Welcome",
        "type": PromotionType.PERCENTAGE,
        "discount_value": Decimal("10"),
        "max_discount": Decimal("100"),
        "valid_from": timezone.now() - timedelta(days=1),
        "valid_until": timezone.now() + timedelta(days=30),
    }
    defaults.update(extra)
    return Promotion.objects.create(**defaults)


class DiscountCalculationTests(TestCase):
    def test_percentage_is_capped_by_max_discount(self):
        promo = make_promotion()
        self.assertEqual(promo.calculate_discount(Decimal("300")), Decimal("30.00"))
        self.assertEqual(promo.calculate_discount(Decimal("5000")), Decimal("100.00"))

    def test_fixed_is_capped_by_order_amount(self):
        promo = make_promotion(code="FLAT50", type=PromotionType.FIXED, discount_value=Decimal("50"), max_discount=None)
        self.assertEqual(promo.calculate_discount(Decimal("30")), Decimal("30.00"))

    def test_free_delivery_has_no_amount(self):
        promo = make_promotion(code="FREEDEL", type=PromotionType.FREE_DELIVERY, discount_value=Decimal("0"))
        self.assertEqual(promo.calculate_discount(Decimal("300")), Decimal("0.00"))

    def test_rounds_half_up(self):
        promo = make_promotion(code="ODD", discount_value=Decimal("12.5"), max_discount=None)
        # 12.5% of 10.10 = 1.2625
        self.assertEqual(promo.calculate_discount(Decimal("10.10")), Decimal("1.26"))

    def test_code_is_uppercased(self):
        self.assertEqual(make_promotion(code="welcome5").code, "WELCOME5")


class EligibilityOrderTests(TestCase):
    def setUp(self):
        self.user = make_user()

    def test_inactive_is_reported_first(self):
        promo = make_promotion(is_active=False, valid_until=timezone.now() - timedelta(hours=1))
        result = services.check_eligibility(promo, user_id=self.user.pk, order_amount=300)
        self.assertEqual(result.reason, "Promotion is not active")

    def test_outside_window(self):
        promo = make_promotion(valid_from=timezone.now() + timedelta(days=1))
        result = services.check_eligibility(promo, user_id=self.user.pk, order_amount=300)
        self.assertEqual(result.reason, "Promotion is not valid at this time")

    def test_usage_limit(self):
        promo = make_promotion(max_uses=5, used_count=5)
        result = services.check_eligibility(promo, user_id=self.user.pk, order_amount=300)
        self.assertEqual(result.reason, "Promotion usage limit exceeded")

    def test_already_used_by_user(self):
        promo = make_promotion()
        PromotionUsage.objects.create(promotion=promo, user=self.user, discount_applied=Decimal("10"))
        result = services.check_eligibility(promo, user_id=self.user.pk, order_amount=300)
        self.assertEqual(result.reason, "You have already used this promotion")

    def test_minimum_order_amount(self):
        promo = make_promotion(min_order_amount=Decimal("199"))
        result = services.check_eligibility(promo, user_id=self.user.pk, order_amount=150)
        self.assertFalse(result.valid)
        self.assertEqual(result.reason, "Minimum order amount of ₹199.00 required")

    def test_store_scope(self):
        allowed, other = make_store(), make_store()
        promo = make_promotion(applicable_to=PromotionScope.STORE)
        promo.stores.add(allowed)
        self.assertTrue(services.check_eligibility(promo, order_amount=300, store_id=allowed.pk).valid)
        result = services.check_eligibility(promo, order_amount=300, store_id=other.pk)
        self.assertEqual(result.reason, "Promotion not applicable to this store")

    def test_unknown_code(self):
        with self.assertRaises(ResourceNotFound):
            services.find_by_code("NOPE")


class RedeemTests(TestCase):
    def test_redeem_increments_and_logs_usage(self):
        user = make_user()
        promo = make_promotion()
        promotion, discount, usage = services.redeem("welcome10", user_id=user.pk, order_amount=Decimal("300"))
        self.assertEqual(discount, Decimal("30.00"))
        self.assertEqual(promotion.used_count, 1)
        self.assertEqual(usage.promotion_id, promo.pk)

    def test_single_use_code_goes_to_exactly_one_user(self):
        make_promotion(max_uses=1)
        first, second = make_user(), make_user()
        services.redeem("WELCOME10", user_id=first.pk, order_amount=Decimal("300"))
        with self.assertRaises(Conflict):
            services.redeem("WELCOME10", user_id=second.pk, order_amount=Decimal("300"))
        self.assertEqual(Promotion.objects.get(code="WELCOME10").used_count, 1)
        self.assertEqual(PromotionUsage.objects.count(), 1)

    def test_min_order_failure_is_invalid_request(self):
        make_promotion(min_order_amount=Decimal("500"))
        with self.assertRaises(InvalidRequest):
            services.redeem("WELCOME10", user_id=make_user().pk, order_amount=Decimal("300"))

    def test_delete_used_promotion_conflicts(self):
        admin = make_user(Role.ADMIN)
        promo = make_promotion()
        services.redeem("WELCOME10", user_id=make_user().pk, order_amount=Decimal("300"))
        with self.assertRaises(Conflict):
            services.delete_promotion(actor=Principal.from_user(admin), promotion_id=promo.pk)


class PromotionApiTests(TestCase):
    def setUp(self):
        self.customer = make_user()
        self.admin = make_user(Role.ADMIN)
        make_promotion()

    def test_validate_reports_invalid_with_200(self):
        client = client_for(self.customer)
        res = client.post("/api/promotions/validate", {"code": "MISSING", "order_amount": "300"}, format="json")
        self.assertEqual(res.status_code, 200)
        self.assertFalse(res.data["data"]["valid"])
        self.assertEqual(res.data["data"]["reason"], "Promotion code not found")

    def test_validate_returns_discount(self):
        client = client_for(self.customer)
        res = client.post("/api/promotions/validate", {"code": "WELCOME10", "order_amount": "300"}, format="json")
        self.assertTrue(res.data["data"]["valid"])
        self.assertEqual(res.data["data"]["discount"], "30.00")

    def test_apply_twice_conflicts(self):
        client = client_for(self.customer)
        body = {"code": "WELCOME10", "order_amount": "300"}
        self.assertEqual(client.post("/api/promotions/apply", body, format="json").status_code, 200)
        res = client.post("/api/promotions/apply", body, format="json")
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.data["error"]["message"], "You have already used this promotion")

    def test_admin_stats(self):
        promo = Promotion.objects.get(code="WELCOME10")
        services.redeem("WELCOME10", user_id=self.customer.pk, order_amount=Decimal("300"))
        res = client_for(self.admin).get(f"/api/admin/promotions/{promo.pk}/stats")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["data"]["unique_users"], 1)
        self.assertEqual(res.data["data"]["total_discount"], Decimal("30.00"))

    def test_customer_cannot_manage_promotions(self):
        res = client_for(self.customer).get("/api/admin/promotions")
        self.assertEqual(res.status_code, 403)
