# blueprints/timeslots/routes.py
from __future__ import annotations
from flask import Blueprint, jsonify, request
from pydantic import BaseModel, Field, ValidationError

from blueprints.auth.routes import admin_required
from . import services as svc

api_bp = Blueprint("timeslots_api", __name__)

class TimeSlotConfigIn(BaseModel):
    startTime: str = Field(pattern=r"^\d{2}:\d{2}$")
    endTime: str = Field(pattern=r"^\d{2}:\d{2}$")
    slotDuration: int
    maxOrdersPerSlot: int = Field(ge=1)

@api_bp.get("/timeslots")
def api_timeslots():
    return jsonify(svc.available_slots())

@api_bp.get("/admin/timeslots")
@admin_required
def api_admin_timeslots_get():
    return jsonify({"config": svc.config_to_dict(svc.get_or_create_config())})

@api_bp.patch("/admin/timeslots")
@admin_required
def api_admin_timeslots_update():
    payload = request.get_json(silent=True) or {}
    try:
        data = TimeSlotConfigIn.model_validate(payload)
    except ValidationError as ve:
        return jsonify({"error": "validation_error", "detail": ve.errors(include_context=False)}), 422
    try:
        cfg = svc.update_config(
            start_time=data.startTime,
            end_time=data.endTime,
            slot_duration=data.slotDuration,
            max_orders_per_slot=data.maxOrdersPerSlot,
        )
    except svc.SlotConfigError as e:
        return jsonify({"error": "invalid_config", "detail": str(e)}), 422
    return jsonify({"config": svc.config_to_dict(cfg)})
