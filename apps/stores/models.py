"""
Stores & catalog.

A Store moves through an admin-gated lifecycle
(draft -> submitted -> active | rejected, active -> suspended) and only an
active, available, open store can take orders. MenuItem prices are the
catalog source of truth; carts and orders snapshot them.
"""
from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F

from common.models import BaseEntity, money_field


class StoreCategory(models.TextChoices):
    RESTAURANT = "Restaurant", "Restaurant"
    GROCERY = "Grocery Store", "Grocery Store"
    BAKERY = "Bakery", "Bakery"
    PHARMACY = "Pharmacy", "Pharmacy"
    FRUITS_VEGETABLES = "Vegetable & Fruits", "Vegetable & Fruits"
    MEAT_FISH = "Meat & Fish", "Meat & Fish"
    DAIRY = "Dairy", "Dairy"
    OTHER = "Other", "Other"


class LicenseType(models.TextChoices):
    FSSAI = "FSSAI", "FSSAI"
    GST = "GST", "GST"
    SHOP_ACT = "Shop Act", "Shop Act"
    TRADE = "Trade License", "Trade License"
    OTHER = "Other", "Other"


class StoreStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SUBMITTED = "submitted", "Submitted for verification"
    PENDING_APPROVAL = "pendingApproval", "Pending approval"
    APPROVED = "approved", "Approved"
    ACTIVE = "active", "Active"
    REJECTED = "rejected", "Rejected"
    SUSPENDED = "suspended", "Suspended"


PENDING_REVIEW_STATUSES = (StoreStatus.SUBMITTED, StoreStatus.PENDING_APPROVAL)


class Store(BaseEntity):
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="stores")
    store_name = models.CharField(max_length=200)
    address = models.CharField(max_length=500)
    city = models.CharField(max_length=100, blank=True, db_index=True)
    phone = models.CharField(max_length=20)
    license_number = models.CharField(max_length=100, unique=True)
    license_type = models.CharField(max_length=20, choices=LicenseType.choices)
    category = models.CharField(max_length=40, choices=StoreCategory.choices, default=StoreCategory.RESTAURANT)
    description = models.CharField(max_length=500, blank=True)
    delivery_time = models.CharField(max_length=30, default="20-30 min")
    min_order = money_field(default=Decimal("49.00"), validators=[MinValueValidator(0)])
    delivery_fee = money_field(default=Decimal("0.00"), validators=[MinValueValidator(0)])
    opening_time = models.CharField(max_length=5, default="09:00")
    closing_time = models.CharField(max_length=5, default="23:00")

    rating = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal("0.00"))
    total_reviews = models.PositiveIntegerField(default=0)
    times_ordered = models.PositiveIntegerField(default=0)

    is_open = models.BooleanField(default=True)
    available = models.BooleanField(default=True)
    is_verified = models.BooleanField(default=False)
    verification_notes = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=StoreStatus.choices, default=StoreStatus.DRAFT, db_index=True)
    rejection_reason = models.CharField(max_length=500, blank=True)
    commission_rate = models.DecimalField(
        max_digits=5, decimal_places=2, null=True, blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["owner"]),
            models.Index(fields=["category", "is_open", "available"]),
        ]
        constraints = [
            models.UniqueConstraint(fields=["owner", "store_name"], name="uniq_store_name_per_owner"),
        ]

    def __str__(self):
        return self.store_name

    @property
    def accepts_orders(self) -> bool:
        return self.status == StoreStatus.ACTIVE and self.available and self.is_open and not self.is_deleted

    def effective_commission_rate(self) -> Decimal:
        if self.commission_rate is None:
            return Decimal(str(settings.MARKETPLACE_DEFAULT_COMMISSION_RATE))
        return self.commission_rate


class MenuCategory(models.TextChoices):
    VEG_MAIN = "Veg Main Course", "Veg Main Course"
    NON_VEG_MAIN = "Non-Veg Main Course", "Non-Veg Main Course"
    STARTERS = "Starters & Snacks", "Starters & Snacks"
    BREADS_RICE = "Breads & Rice", "Breads & Rice"
    BEVERAGES = "Drinks & Beverages", "Drinks & Beverages"
    DAIRY_EGGS = "Dairy & Eggs", "Dairy & Eggs"
    GROCERIES = "Groceries & Essentials", "Groceries & Essentials"
    FRUITS_VEGETABLES = "Fruits & Vegetables", "Fruits & Vegetables"
    DESSERTS = "Sweets & Desserts", "Sweets & Desserts"
    FAST_FOOD = "Fast Food", "Fast Food"
    BAKERY = "Bakery Items", "Bakery Items"
    GRAINS = "Grains & Pulses", "Grains & Pulses"
    MEAT_SEAFOOD = "Meat & Seafood", "Meat & Seafood"
    OTHER = "Other", "Other"


class FoodType(models.TextChoices):
    VEG = "veg", "Veg"
    NON_VEG = "non-veg", "Non-veg"
    EGG = "egg", "Egg"
    VEGAN = "vegan", "Vegan"


class MenuItem(BaseEntity):
    store = models.ForeignKey(Store, on_delete=models.CASCADE, related_name="menu_items")
    name = models.CharField(max_length=100)
    description = models.CharField(max_length=300, blank=True)
    price = money_field(validators=[MinValueValidator(1), MaxValueValidator(10000)])
    original_price = money_field(null=True, blank=True, validators=[MinValueValidator(0)])
    category = models.CharField(max_length=40, choices=MenuCategory.choices, default=MenuCategory.VEG_MAIN)
    food_type = models.CharField(max_length=10, choices=FoodType.choices, default=FoodType.VEG)
    is_available = models.BooleanField(default=True)
    in_stock = models.BooleanField(default=True)
    stock_quantity = models.PositiveIntegerField(default=0)
    preparation_time = models.PositiveIntegerField(default=15, validators=[MaxValueValidator(240)])
    times_ordered = models.PositiveIntegerField(default=0)
    total_revenue = money_field(default=Decimal("0.00"))
    discount = models.PositiveIntegerField(default=0, validators=[MaxValueValidator(100)])
    tags = models.JSONField(default=list, blank=True)
    disabled_by_admin = models.BooleanField(default=False)

    class Meta:
        ordering = ["category", "name"]
        indexes = [
            models.Index(fields=["store", "is_available"]),
            models.Index(fields=["store", "category"]),
        ]

    def __str__(self):
        return f"{self.name} ({self.store_id})"

    @property
    def orderable(self) -> bool:
        return self.is_available and self.in_stock and not self.disabled_by_admin and not self.is_deleted

    def record_sale(self, quantity: int, revenue: Decimal):
        MenuItem.objects.filter(pk=self.pk).update(
            times_ordered=F("times_ordered") + quantity,
            total_revenue=F("total_revenue") + revenue,
        )
