"""
Promotions: discount codes and their redemption log.

`used_count` is only ever bumped with a conditional UPDATE inside the
redemption transaction, and each redemption leaves one PromotionUsage row.
Per-user caps are answered from PromotionUsage through its (promotion, user)
index.
"""
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator, RegexValidator
from django.db import models
from django.utils import timezone

from common.models import BaseEntity, money_field
from common.money import ZERO, percentage_of, to_money


class PromotionType(models.TextChoices):
    PERCENTAGE = "percentage", "Percentage off"
    FIXED = "fixed", "Fixed amount off"
    FREE_DELIVERY = "free_delivery", "Free delivery"
    BUY_ONE_GET_ONE = "buy_one_get_one", "Buy one get one"


class PromotionScope(models.TextChoices):
    ALL = "all", "All orders"
    CATEGORY = "category", "Specific categories"
    STORE = "store", "Specific stores"
    ITEM = "item", "Specific items"


code_validator = RegexValidator(r"^[A-Z0-9]+$", "Promotion code must be uppercase letters and digits only.")


class Promotion(BaseEntity):
    code = models.CharField(max_length=30, unique=True, validators=[code_validator])
    name = models.CharField(max_length=120)
    description = models.CharField(max_length=500, blank=True)
    type = models.CharField(max_length=20, choices=PromotionType.choices)
    discount_value = money_field(validators=[MinValueValidator(0)])
    max_discount = money_field(null=True, blank=True, validators=[MinValueValidator(0)])
    min_order_amount = money_field(default=Decimal("0.00"), validators=[MinValueValidator(0)])

    applicable_to = models.CharField(max_length=10, choices=PromotionScope.choices, default=PromotionScope.ALL)
    categories = models.JSONField(default=list, blank=True)
    stores = models.ManyToManyField("stores.Store", blank=True, related_name="promotions")
    item_ids = models.JSONField(default=list, blank=True)
    city_filter = models.JSONField(default=list, blank=True)

    max_uses = models.PositiveIntegerField(null=True, blank=True)  # null = unlimited
    used_count = models.PositiveIntegerField(default=0)
    max_uses_per_user = models.PositiveIntegerField(default=1)

    valid_from = models.DateTimeField(default=timezone.now)
    valid_until = models.DateTimeField()
    is_active = models.BooleanField(default=True, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["is_active", "valid_from", "valid_until"]),
        ]

    def __str__(self):
        return self.code

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    @property
    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.used_count >= self.max_uses

    def is_live(self, now=None) -> bool:
        now = now or timezone.now()
        return self.valid_from <= now <= self.valid_until

    def calculate_discount(self, order_amount) -> Decimal:
        """Monetary discount for `order_amount`; free delivery and BOGO carry no amount."""
        order_amount = to_money(order_amount)
        if self.type == PromotionType.PERCENTAGE:
            discount = percentage_of(order_amount, self.discount_value)
            if self.max_discount is not None:
                discount = min(discount, to_money(self.max_discount))
        elif self.type == PromotionType.FIXED:
            discount = min(to_money(self.discount_value), order_amount)
        else:
            discount = ZERO
        return to_money(max(discount, ZERO))


class PromotionUsage(BaseEntity):
    promotion = models.ForeignKey(Promotion, on_delete=models.CASCADE, related_name="usages")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="promotion_usages")
    order = models.ForeignKey(
        "orders.Order", on_delete=models.SET_NULL, null=True, blank=True, related_name="promotion_usages",
    )
    discount_applied = money_field(default=Decimal("0.00"))
    used_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-used_at"]
        indexes = [
            models.Index(fields=["promotion", "user"]),
        ]

    def __str__(self):
        return f"{self.promotion_id} used by {self.user_id}"
