"""
Accounts: marketplace users and the audit trail.

 - Email is the login identifier.
 - `role` decides which API surface a user may call; `admin_role` refines admins.
 - `status` is checked by the order fraud gate (suspended accounts cannot order).
 - AuditLog records privileged actions (admin decisions, payouts, refunds).
"""
from typing import Optional

from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import IntegrityError, models, transaction
from django.core.exceptions import ValidationError

from common.models import BaseEntity


class Role(models.TextChoices):
    CUSTOMER = "customer", "Customer"
    STORE_OWNER = "storeOwner", "Store owner"
    ADMIN = "admin", "Admin"
    DELIVERY = "delivery", "Delivery partner"


class AdminRole(models.TextChoices):
    SUPER_ADMIN = "superAdmin", "Super admin"
    SUPPORT_ADMIN = "supportAdmin", "Support admin"


class AccountStatus(models.TextChoices):
    ACTIVE = "active", "Active"
    SUSPENDED = "suspended", "Suspended"


# ---------------------------------------------------------------------
# User manager
# ---------------------------------------------------------------------
class UserManager(BaseUserManager):
    use_in_migrations = True

    def _create_user(self, *, email: str, password: Optional[str], **extra):
        if not email:
            raise ValueError("Users must have an email address")
        email = self.normalize_email(email).lower()

        user = self.model(email=email, **extra)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()

        try:
            user.full_clean(exclude=["password"])
            user.save(using=self._db)
        except IntegrityError as e:
            raise ValidationError({"email": ["A user with this email already exists."]}) from e
        return user

    def create_user(self, email: str, password: Optional[str] = None, **extra):
        extra.setdefault("role", Role.CUSTOMER)
        extra.setdefault("is_staff", False)
        extra.setdefault("is_superuser", False)
        return self._create_user(email=email, password=password, **extra)

    def create_superuser(self, email: str, password: str, **extra):
        if not password:
            raise ValueError("Superuser must have a password")
        extra.setdefault("role", Role.ADMIN)
        extra.setdefault("admin_role", AdminRole.SUPER_ADMIN)
        extra.setdefault("is_staff", True)
        extra.setdefault("is_superuser", True)
        if extra.get("is_staff") is not True:
            raise ValueError("Superuser must have is_staff=True.")
        if extra.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_superuser=True.")
        return self._create_user(email=email, password=password, **extra)

    def get_by_natural_key(self, key: str):
        return self.get(email__iexact=key)


# ---------------------------------------------------------------------
# User model
# ---------------------------------------------------------------------
class User(AbstractBaseUser, PermissionsMixin, BaseEntity):
    email = models.EmailField(unique=True, db_index=True)
    name = models.CharField(max_length=200, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.CUSTOMER, db_index=True)
    admin_role = models.CharField(max_length=20, choices=AdminRole.choices, blank=True)
    status = models.CharField(max_length=20, choices=AccountStatus.choices, default=AccountStatus.ACTIVE)
    addresses = models.JSONField(default=list, blank=True)  # [{label, street, city, state, pincode, country}]
    suspended_reason = models.CharField(max_length=500, blank=True)

    # Django
    is_staff = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["name"]

    class Meta:
        indexes = [
            models.Index(fields=["role", "status"]),
        ]
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self) -> str:
        return self.email or f"User {self.pk}"

    @classmethod
    def register(cls, email: str, password: str, **extra) -> "User":
        with transaction.atomic():
            user = cls.objects.create_user(email=email, password=password, **extra)
            AuditLog.log(user, "user.register", {"email": user.email, "role": user.role})
            return user

    def suspend(self, reason: str = ""):
        self.status = AccountStatus.SUSPENDED
        self.suspended_reason = reason
        self.save(update_fields=["status", "suspended_reason", "updated_at"])

    def reactivate(self):
        self.status = AccountStatus.ACTIVE
        self.suspended_reason = ""
        self.save(update_fields=["status", "suspended_reason", "updated_at"])


class AuditLog(BaseEntity):
    actor_id = models.UUIDField(null=True, blank=True)
    action = models.CharField(max_length=200, db_index=True)
    meta = models.JSONField(default=dict)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["actor_id", "action"])]

    def __str__(self):
        return f"{self.action} by {self.actor_id}"

    @classmethod
    def log(cls, actor, action: str, meta: Optional[dict] = None) -> "AuditLog":
        """`actor` may be a User, a Principal or None."""
        meta = meta or {}
        actor_id = getattr(actor, "user_id", None) or getattr(actor, "id", None) if actor else None
        return cls.objects.create(actor_id=actor_id, action=action, meta=meta)
