"""
Customer carts.

A signed-in customer has one persisted Cart; anonymous visitors get the same
shape as a JSON document in the shared cache (see apps.cart.storage). Lines
snapshot the unit price at the time they are added.
"""
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from common.models import BaseEntity, money_field


class Cart(BaseEntity):
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="cart")
    store = models.ForeignKey("stores.Store", on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    promo_code = models.CharField(max_length=30, blank=True)
    discount_amount = money_field(default=Decimal("0.00"))
    free_delivery = models.BooleanField(default=False)

    def __str__(self):
        return f"Cart of {self.user_id}"


class CartItem(BaseEntity):
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name="items")
    menu_item = models.ForeignKey("stores.MenuItem", on_delete=models.CASCADE, related_name="+")
    item_name = models.CharField(max_length=100)
    unit_price = money_field()
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(fields=["cart", "menu_item"], name="uniq_menu_item_per_cart"),
        ]

    def __str__(self):
        return f"{self.quantity} x {self.item_name}"
