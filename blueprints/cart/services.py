# blueprints/cart/services.py
"""
Корзина покупателя как явный объект сессии.

Корзина живёт в flask.session под ключом CART_SESSION_KEY: на входе в запрос
её загружает load_cart(), на выходе сохраняет save_cart(). Общего глобального
состояния нет: каждый запрос работает со своей копией.
"""
from __future__ import annotations
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import List, Optional

from flask import session

CART_SESSION_KEY = "cart"

@dataclass
class CartItem:
    menu_item_id: int
    name: str
    price: str                     # Decimal строкой, чтобы пережить JSON-сессию
    quantity: int = 1
    image: Optional[str] = None
    cup_names: List[str] = field(default_factory=list)

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.price) * self.quantity

@dataclass
class Cart:
    items: List[CartItem] = field(default_factory=list)
    customer_name: str = ""
    customer_mobile: str = ""
    pickup_location_id: Optional[int] = None
    pickup_time: str = ""

    # ---- позиции ----
    def find(self, menu_item_id: int) -> Optional[CartItem]:
        for it in self.items:
            if it.menu_item_id == menu_item_id:
                return it
        return None

    def add_item(self, menu_item_id: int, name: str, price: Decimal, image: Optional[str] = None) -> CartItem:
        existing = self.find(menu_item_id)
        if existing:
            existing.quantity += 1
            existing.cup_names.append("")
            return existing
        item = CartItem(menu_item_id=menu_item_id, name=name, price=str(price),
                        quantity=1, image=image, cup_names=[""])
        self.items.append(item)
        return item

    def remove_item(self, menu_item_id: int) -> None:
        self.items = [it for it in self.items if it.menu_item_id != menu_item_id]

    def update_quantity(self, menu_item_id: int, quantity: int) -> None:
        if quantity < 1:
            self.remove_item(menu_item_id)
            return
        it = self.find(menu_item_id)
        if it is None:
            raise LookupError("NOT_IN_CART")
        names = it.cup_names
        if quantity > len(names):
            names = names + [""] * (quantity - len(names))
        else:
            names = names[:quantity]
        it.quantity = quantity
        it.cup_names = names

    def update_cup_name(self, menu_item_id: int, index: int, name: str) -> None:
        it = self.find(menu_item_id)
        if it is None:
            raise LookupError("NOT_IN_CART")
        if not 0 <= index < len(it.cup_names):
            raise IndexError("CUP_INDEX_OUT_OF_RANGE")
        it.cup_names[index] = name

    def set_all_cup_names(self, menu_item_id: int, name: str) -> None:
        it = self.find(menu_item_id)
        if it is None:
            raise LookupError("NOT_IN_CART")
        it.cup_names = [name for _ in it.cup_names]

    # ---- оформление ----
    def set_customer_info(self, name: str, mobile: str) -> None:
        self.customer_name = name
        self.customer_mobile = mobile

    def set_pickup_location(self, location_id: Optional[int]) -> None:
        self.pickup_location_id = location_id

    def set_pickup_time(self, hhmm: str) -> None:
        self.pickup_time = hhmm

    def clear(self) -> None:
        self.items = []
        self.customer_name = ""
        self.customer_mobile = ""
        self.pickup_location_id = None
        self.pickup_time = ""

    # ---- итоги ----
    def total(self) -> Decimal:
        return sum((it.line_total for it in self.items), Decimal("0"))

    def total_items(self) -> int:
        return sum(it.quantity for it in self.items)

    def to_dict(self) -> dict:
        return asdict(self)

    def to_json(self) -> dict:
        out = self.to_dict()
        for it in out["items"]:
            it["price"] = float(it["price"])
        out["total"] = float(self.total())
        out["total_items"] = self.total_items()
        return out

    @classmethod
    def from_dict(cls, raw: Optional[dict]) -> "Cart":
        if not raw:
            return cls()
        items = [CartItem(**it) for it in raw.get("items", [])]
        return cls(
            items=items,
            customer_name=raw.get("customer_name", ""),
            customer_mobile=raw.get("customer_mobile", ""),
            pickup_location_id=raw.get("pickup_location_id"),
            pickup_time=raw.get("pickup_time", ""),
        )

def load_cart() -> Cart:
    return Cart.from_dict(session.get(CART_SESSION_KEY))

def save_cart(cart: Cart) -> None:
    session[CART_SESSION_KEY] = cart.to_dict()

def checkout_payload(cart: Cart) -> dict:
    """Тело для создания заказа: пустые имена на стаканах заменяются именем покупателя."""
    fallback = cart.customer_name.strip()
    return {
        "customerName": cart.customer_name,
        "customerMobile": cart.customer_mobile,
        "pickupLocationId": cart.pickup_location_id,
        "pickupTime": cart.pickup_time,
        "items": [
            {
                "menuItemId": it.menu_item_id,
                "quantity": it.quantity,
                "cupNames": [(n.strip() or fallback) for n in it.cup_names],
            }
            for it in cart.items
        ],
    }
