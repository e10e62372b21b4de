"""
Cart persistence.

Both backends load and save a `CartState`; services never care which one they
hold. Signed-in customers are backed by the Cart/CartItem tables, guests by a
JSON document in the default cache under `cart:session:<id>` that expires
MARKETPLACE_GUEST_CART_TTL seconds after the last write.
"""
import secrets
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import List, Optional

from django.conf import settings
from django.core.cache import cache
from django.db import transaction

from common.money import ZERO, to_money

from .models import Cart, CartItem

SESSION_COOKIE = "cart_session"


@dataclass
class CartLine:
    menu_item_id: str
    item_name: str
    unit_price: Decimal
    quantity: int

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@dataclass
class CartState:
    store_id: Optional[str] = None
    store_name: str = ""
    promo_code: str = ""
    discount_amount: Decimal = ZERO
    free_delivery: bool = False
    lines: List[CartLine] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def line_for(self, menu_item_id) -> Optional[CartLine]:
        wanted = str(menu_item_id)
        for line in self.lines:
            if line.menu_item_id == wanted:
                return line
        return None

    def reset(self):
        self.store_id = None
        self.store_name = ""
        self.drop_discount()
        self.lines = []

    def drop_discount(self):
        self.promo_code = ""
        self.discount_amount = ZERO
        self.free_delivery = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["discount_amount"] = str(self.discount_amount)
        for line in data["lines"]:
            line["unit_price"] = str(line["unit_price"])
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "CartState":
        if not data:
            return cls()
        lines = [
            CartLine(
                menu_item_id=line["menu_item_id"],
                item_name=line["item_name"],
                unit_price=to_money(line["unit_price"]),
                quantity=int(line["quantity"]),
            )
            for line in data.get("lines", [])
        ]
        return cls(
            store_id=data.get("store_id"),
            store_name=data.get("store_name", ""),
            promo_code=data.get("promo_code", ""),
            discount_amount=to_money(data.get("discount_amount")),
            free_delivery=bool(data.get("free_delivery")),
            lines=lines,
        )


class DatabaseCartBackend:
    is_guest = False

    def __init__(self, user_id):
        self.user_id = user_id

    def _cart(self, for_update=False) -> Optional[Cart]:
        qs = Cart.objects.select_related("store")
        if for_update:
            qs = qs.select_for_update()
        return qs.filter(user_id=self.user_id).first()

    def load(self) -> CartState:
        cart = self._cart()
        if cart is None:
            return CartState()
        state = CartState(
            store_id=str(cart.store_id) if cart.store_id else None,
            store_name=cart.store.store_name if cart.store_id else "",
            promo_code=cart.promo_code,
            discount_amount=to_money(cart.discount_amount),
            free_delivery=cart.free_delivery,
            lines=[
                CartLine(
                    menu_item_id=str(item.menu_item_id),
                    item_name=item.item_name,
                    unit_price=to_money(item.unit_price),
                    quantity=item.quantity,
                )
                for item in cart.items.all()
            ],
        )
        return state

    @transaction.atomic
    def save(self, state: CartState) -> None:
        cart = self._cart(for_update=True) or Cart(user_id=self.user_id)
        cart.store_id = state.store_id
        cart.promo_code = state.promo_code
        cart.discount_amount = state.discount_amount
        cart.free_delivery = state.free_delivery
        cart.save()
        cart.items.all().delete()
        CartItem.objects.bulk_create([
            CartItem(
                cart=cart,
                menu_item_id=line.menu_item_id,
                item_name=line.item_name,
                unit_price=line.unit_price,
                quantity=line.quantity,
            )
            for line in state.lines
        ])

    def clear(self) -> None:
        self.save(CartState())


class CacheCartBackend:
    is_guest = True

    def __init__(self, session_id: str):
        self.session_id = session_id

    @property
    def key(self) -> str:
        return f"cart:session:{self.session_id}"

    def load(self) -> CartState:
        return CartState.from_dict(cache.get(self.key))

    def save(self, state: CartState) -> None:
        cache.set(self.key, state.to_dict(), settings.MARKETPLACE_GUEST_CART_TTL)

    def clear(self) -> None:
        cache.delete(self.key)


def new_session_id() -> str:
    return "sess_" + secrets.token_urlsafe(16)
