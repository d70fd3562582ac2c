# blueprints/orders/routes.py
from __future__ import annotations
import click
from typing import List, Optional

from flask import Blueprint, current_app, jsonify, request
from pydantic import BaseModel, Field, ValidationError, field_validator

from extensions import db
from models import Order
from blueprints.auth.routes import current_customer
from blueprints.cart.services import checkout_payload, load_cart, save_cart
from blueprints.core.http import error, pydantic_errors_safe
from . import services as svc
from .payments import PaymentGatewayError

api_bp = Blueprint("orders_api", __name__, cli_group="orders")

class OrderLineIn(BaseModel):
    menuItemId: int
    quantity: int = Field(ge=1, le=50)
    cupNames: List[str] = Field(default_factory=list)

    @field_validator("cupNames")
    @classmethod
    def _trim(cls, v: List[str]):
        return [n.strip()[:40] for n in v]

class OrderIn(BaseModel):
    customerName: str = Field(min_length=1, max_length=120)
    customerMobile: str
    pickupLocationId: int
    pickupTime: str
    items: List[OrderLineIn] = Field(min_length=1)

class VerifyIn(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str

# коды сервисного слоя -> HTTP

def service_error(e: Exception):
    code = str(e)
    if isinstance(e, LookupError):
        return error(code.lower(), 404)
    if isinstance(e, svc.SlotUnavailable):
        return error(code.lower(), 409)
    if isinstance(e, svc.InvalidTransition):
        return error(code.lower(), 409)
    return error(code.lower(), 400)

def _create(payload: dict):
    try:
        data = OrderIn.model_validate(payload)
    except ValidationError as ve:
        return error("missing_required_fields", 400, detail=pydantic_errors_safe(ve))
    lines = [svc.LineIn(menu_item_id=ln.menuItemId, quantity=ln.quantity, cup_names=ln.cupNames)
             for ln in data.items]
    try:
        order, gw = svc.create_order(
            customer_name=data.customerName,
            customer_mobile=data.customerMobile.strip(),
            pickup_location_id=data.pickupLocationId,
            pickup_time=data.pickupTime.strip(),
            lines=lines,
            customer=current_customer(),
        )
    except (ValueError, LookupError, svc.SlotUnavailable) as e:
        return service_error(e)
    except PaymentGatewayError as e:
        current_app.logger.error("payment gateway failure: %s", e)
        return error("payment_gateway_unavailable", 502)
    return jsonify({
        "order": svc.serialize_order(order),
        "gateway_order_id": gw.id,
        "gateway_key_id": current_app.config.get("RAZORPAY_KEY_ID"),
        "amount": gw.amount,
        "currency": gw.currency,
    }), 201

@api_bp.post("/orders")
def api_orders_create():
    return _create(request.get_json(silent=True) or {})

@api_bp.post("/orders/from-cart")
def api_orders_from_cart():
    cart = load_cart()
    if not cart.items:
        return error("cart_empty", 400)
    return _create(checkout_payload(cart))

@api_bp.get("/orders")
def api_orders_get():
    order_id = request.args.get("id", type=int)
    number = request.args.get("orderNumber")
    order: Optional[Order] = None
    if order_id:
        order = db.session.get(Order, order_id)
    elif number:
        order = Order.query.filter_by(order_number=number).first()
    else:
        return error("order_id_or_number_required", 400)
    if order is None:
        return error("order_not_found", 404)
    return jsonify({"order": svc.serialize_order(order)})

@api_bp.get("/orders/<string:order_number>")
def api_order_track(order_number: str):
    order = Order.query.filter_by(order_number=order_number).first()
    if order is None:
        return error("order_not_found", 404)
    return jsonify({"order": svc.serialize_order(order)})

@api_bp.get("/orders/mine")
def api_orders_mine():
    customer = current_customer()
    if customer is None:
        return error("unauthorized", 401)
    rows = (Order.query.filter_by(customer_id=customer.id)
            .order_by(Order.created_at.desc()).limit(50).all())
    return jsonify({"orders": [svc.serialize_order(o) for o in rows]})

@api_bp.post("/orders/verify")
def api_orders_verify():
    try:
        data = VerifyIn.model_validate(request.get_json(silent=True) or {})
    except ValidationError:
        return error("missing_fields", 400)
    try:
        order = svc.verify_payment(data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature)
    except (ValueError, LookupError) as e:
        return service_error(e)
    # после оплаты корзина не нужна
    cart = load_cart()
    if cart.items:
        cart.clear()
        save_cart(cart)
    return jsonify({"success": True, "order": svc.serialize_order(order)})

# ---------- CLI ----------
@api_bp.cli.command("expire-pending")
@click.option("--minutes", type=int, default=None, help="age of unpaid orders to cancel")
def expire_pending_cmd(minutes: Optional[int]):
    """Отменить неоплаченные заказы и освободить их слоты."""
    minutes = minutes or current_app.config.get("ORDER_HOLD_MINUTES", 30)
    n = svc.expire_pending(minutes)
    click.echo(f"expired {n} pending orders")
