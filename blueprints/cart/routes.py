# blueprints/cart/routes.py
from __future__ import annotations
from typing import Optional

from flask import Blueprint, jsonify, request
from pydantic import BaseModel, Field

from extensions import db
from models import MenuItem, PickupLocation
from blueprints.core.http import error
from .services import load_cart, save_cart

api_bp = Blueprint("cart_api", __name__)

class AddItemIn(BaseModel):
    menuItemId: int

class QuantityIn(BaseModel):
    quantity: int

class CupNameIn(BaseModel):
    name: str = Field(max_length=40)
    index: Optional[int] = None   # без index: одно имя на все стаканы

class CheckoutIn(BaseModel):
    customerName: Optional[str] = Field(None, max_length=120)
    customerMobile: Optional[str] = Field(None, max_length=15)
    pickupLocationId: Optional[int] = None
    pickupTime: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")

def _cart_response(cart, status: int = 200):
    save_cart(cart)
    return jsonify({"cart": cart.to_json()}), status

@api_bp.get("/cart")
def api_cart_get():
    return jsonify({"cart": load_cart().to_json()})

@api_bp.post("/cart/items")
def api_cart_add():
    data = AddItemIn.model_validate(request.get_json(silent=True) or {})
    item: MenuItem | None = db.session.get(MenuItem, data.menuItemId)
    if item is None or not item.is_active:
        return error("menu_item_unavailable", 404)
    cart = load_cart()
    cart.add_item(item.id, item.name, item.price, item.image)
    return _cart_response(cart)

@api_bp.patch("/cart/items/<int:menu_item_id>")
def api_cart_quantity(menu_item_id: int):
    data = QuantityIn.model_validate(request.get_json(silent=True) or {})
    cart = load_cart()
    try:
        cart.update_quantity(menu_item_id, data.quantity)
    except LookupError:
        return error("not_in_cart", 404)
    return _cart_response(cart)

@api_bp.delete("/cart/items/<int:menu_item_id>")
def api_cart_remove(menu_item_id: int):
    cart = load_cart()
    cart.remove_item(menu_item_id)
    return _cart_response(cart)

@api_bp.put("/cart/items/<int:menu_item_id>/cup-names")
def api_cart_cup_names(menu_item_id: int):
    data = CupNameIn.model_validate(request.get_json(silent=True) or {})
    cart = load_cart()
    try:
        if data.index is None:
            cart.set_all_cup_names(menu_item_id, data.name)
        else:
            cart.update_cup_name(menu_item_id, data.index, data.name)
    except IndexError:
        return error("cup_index_out_of_range", 400, field="index")
    except LookupError:
        return error("not_in_cart", 404)
    return _cart_response(cart)

@api_bp.put("/cart/checkout")
def api_cart_checkout():
    data = CheckoutIn.model_validate(request.get_json(silent=True) or {})
    cart = load_cart()
    if data.customerName is not None or data.customerMobile is not None:
        cart.set_customer_info(
            (data.customerName if data.customerName is not None else cart.customer_name).strip(),
            (data.customerMobile if data.customerMobile is not None else cart.customer_mobile).strip(),
        )
    if data.pickupLocationId is not None:
        loc = db.session.get(PickupLocation, data.pickupLocationId)
        if loc is None or not loc.is_active:
            return error("invalid_pickup_location", 400, field="pickupLocationId")
        cart.set_pickup_location(loc.id)
    if data.pickupTime is not None:
        cart.set_pickup_time(data.pickupTime)
    return _cart_response(cart)

@api_bp.delete("/cart")
def api_cart_clear():
    cart = load_cart()
    cart.clear()
    return _cart_response(cart)
