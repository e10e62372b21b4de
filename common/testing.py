"""Fixtures shared by the app test suites."""
import uuid
from decimal import Decimal

from rest_framework.test import APIClient

from apps.accounts.models import Role, User
from apps.orders.models import Order, OrderItem, OrderStatus
from apps.stores.models import MenuItem, Store, StoreStatus


def make_user(role=Role.CUSTOMER, **extra) -> User:
    email = extra.pop("email", f"{role.lower()}-{uuid.uuid4().hex[:8]}@example.com")
    return User.objects.create_user(email=email, password="Passw0rd!x", name=extra.pop("name", "Test User"), role=role, **extra)


def make_store(owner=None, **extra) -> Store:
    owner = owner or make_user(Role.STORE_OWNER)
    defaults = {
        "store_name": f"Store {uuid.uuid4().hex[:6]}",
        "address": "12 MG Road",
        "city": "Bengaluru",
        "phone": "9876543210",
        "license_number": uuid.uuid4().hex[:12].upper(),
        "license_type": "FSSAI",
        "status": StoreStatus.ACTIVE,
        "is_verified": True,
    }
    defaults.update(extra)
    return Store.objects.create(owner=owner, **defaults)


def make_item(store, price="150.00", **extra) -> MenuItem:
    defaults = {"name": f"Item {uuid.uuid4().hex[:6]}", "stock_quantity": 100}
    defaults.update(extra)
    return MenuItem.objects.create(store=store, price=Decimal(price), **defaults)


def client_for(user) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=user)
    return client


def make_order(customer, store, amount="300.00", status=OrderStatus.PENDING, **extra) -> Order:
    """An order with a single line worth `amount`, bypassing checkout."""
    amount = Decimal(amount)
    defaults = {
        "subtotal": amount,
        "final_price": amount,
        "delivery_address": {"label": "Home", "street": "1 Park St", "city": "Bengaluru", "pincode": "560001"},
        "status": status,
    }
    defaults.update(extra)
    order = Order.objects.create(customer=customer, store=store, **defaults)
    OrderItem.objects.create(order=order, item_name="Thali", quantity=1, unit_price=amount)
    return order
