# blueprints/admin/routes.py
from __future__ import annotations
from datetime import date
from typing import Optional

from flask import Blueprint, abort, jsonify, request
from pydantic import BaseModel

from extensions import db
from models import Order, OrderStatus
from blueprints.auth.routes import admin_required, staff_required
from blueprints.core.http import error
from blueprints.orders import services as orders
from blueprints.orders.routes import service_error
from blueprints.timeslots import services as slots

api_bp = Blueprint("admin_api", __name__)

class StatusIn(BaseModel):
    status: str

def _parse_day(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        abort(400)

# ---------- заказы ----------
@api_bp.get("/admin/orders")
@admin_required
def admin_orders_list():
    status = (request.args.get("status") or "").upper() or None
    if status and status != "ALL" and status not in OrderStatus.__members__:
        return error("unknown_status", 400, field="status")
    day = _parse_day(request.args.get("date"))
    rows = orders.list_paid_orders(status=None if status == "ALL" else status, day=day)
    return jsonify({"orders": [orders.serialize_order(o) for o in rows]})

@api_bp.patch("/admin/orders/<int:id>")
@admin_required
def admin_orders_update(id: int):
    data = StatusIn.model_validate(request.get_json(silent=True) or {})
    order = db.session.get(Order, id) or abort(404)
    try:
        orders.change_status(order, data.status.upper())
    except ValueError as e:
        return service_error(e)
    return jsonify({"order": orders.serialize_order(order)})

# ---------- дашборд ----------
@api_bp.get("/admin/dashboard/summary")
@admin_required
def dashboard_summary():
    day = _parse_day(request.args.get("date")) or slots.shop_now().date()
    return jsonify({"ok": True, **orders.dashboard_summary(day)})

# ---------- экран выдачи ----------
@api_bp.get("/counter/orders")
@staff_required
def counter_orders():
    day = slots.shop_now().date()
    return jsonify({"date": day.isoformat(), "columns": orders.counter_board(day)})

@api_bp.post("/counter/orders/<int:id>/advance")
@staff_required
def counter_advance(id: int):
    order = db.session.get(Order, id) or abort(404)
    try:
        orders.advance(order)
    except ValueError as e:
        return service_error(e)
    return jsonify({"order": orders.serialize_order(order)})
