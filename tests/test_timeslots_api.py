from __future__ import annotations
from datetime import datetime
from decimal import Decimal
import pytest

from app import create_app
from extensions import db
from models import (
    Order, OrderStatus, PaymentStatus, PickupLocation, TimeSlotConfig, User,
)
from blueprints.auth.routes import reset_rate_limits
from blueprints.timeslots import services as svc

FIXED_NOW = datetime(2026, 10, 19, 8, 0)

@pytest.fixture()
def app_ctx(monkeypatch):
    monkeypatch.setattr(svc, "shop_now", lambda: FIXED_NOW)
    reset_rate_limits()
    app = create_app("dev")
    app.config.update(TESTING=True, WTF_CSRF_ENABLED=False)
    with app.app_context():
        db.create_all()
        admin = User(username="admin", role="ADMIN")
        admin.set_password("adminpass")
        db.session.add(admin)
        db.session.add(TimeSlotConfig(start_time="09:00", end_time="10:00", slot_duration=15, max_orders_per_slot=2))
        db.session.commit()
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture()
def client(app_ctx):
    return app_ctx.test_client()

def login_admin(client):
    r = client.post("/api/v1/auth/login", json={"username": "admin", "password": "adminpass"})
    assert r.status_code == 200

def _paid_order(n: int, hhmm: str, status: str = OrderStatus.CONFIRMED.value,
                payment: str = PaymentStatus.PAID.value, day=FIXED_NOW.date()):
    h, m = map(int, hhmm.split(":"))
    return Order(
        order_number=f"ORD-T-{n}", customer_name="A", customer_mobile="9876543210",
        pickup_location_id=1, pickup_time=datetime(day.year, day.month, day.day, h, m),
        total_amount=Decimal("99"), status=status, payment_status=payment,
    )

def test_public_slots_shape(client):
    r = client.get("/api/v1/timeslots")
    assert r.status_code == 200
    js = r.get_json()
    assert [s["time"] for s in js["slots"]] == ["09:00", "09:15", "09:30", "09:45"]
    assert js["slots"][0] == {"time": "09:00", "displayTime": "9:00 AM", "available": True}
    assert js["config"] == {"startTime": "09:00", "endTime": "10:00", "slotDuration": 15}

def test_booked_tally_counts_only_paid_not_cancelled(app_ctx):
    db.session.add(PickupLocation(name="Main Counter"))
    db.session.add_all([
        _paid_order(1, "09:15"),
        _paid_order(2, "09:15", status=OrderStatus.READY.value),
        _paid_order(3, "09:30", status=OrderStatus.CANCELLED.value),
        _paid_order(4, "09:30", status=OrderStatus.PENDING.value, payment=PaymentStatus.PENDING.value),
        _paid_order(5, "09:45", day=datetime(2026, 10, 18).date()),   # вчера
    ])
    db.session.commit()
    assert svc.booked_tally(FIXED_NOW.date()) == {"09:15": 2}

    out = svc.available_slots()
    avail = {s["time"]: s["available"] for s in out["slots"]}
    assert avail == {"09:00": True, "09:15": False, "09:30": True, "09:45": True}

def test_config_created_lazily(app_ctx):
    TimeSlotConfig.query.delete()
    db.session.commit()
    cfg = svc.get_or_create_config()
    assert (cfg.start_time, cfg.end_time, cfg.slot_duration, cfg.max_orders_per_slot) == ("09:00", "22:00", 15, 5)
    assert TimeSlotConfig.query.count() == 1
    # повторный вызов не плодит строки
    svc.get_or_create_config()
    assert TimeSlotConfig.query.count() == 1

def test_admin_config_requires_login(client):
    assert client.get("/api/v1/admin/timeslots").status_code == 401

def test_admin_config_get_and_patch(client):
    login_admin(client)
    r = client.get("/api/v1/admin/timeslots")
    assert r.status_code == 200
    assert r.get_json()["config"]["maxOrdersPerSlot"] == 2

    r = client.patch("/api/v1/admin/timeslots", json={
        "startTime": "08:00", "endTime": "09:00", "slotDuration": 30, "maxOrdersPerSlot": 3,
    })
    assert r.status_code == 200
    cfg = r.get_json()["config"]
    assert cfg["startTime"] == "08:00" and cfg["slotDuration"] == 30 and cfg["maxOrdersPerSlot"] == 3

    js = client.get("/api/v1/timeslots").get_json()
    # 08:00 уже в прошлом относительно 08:00 + 15 минут
    assert [(s["time"], s["available"]) for s in js["slots"]] == [("08:00", False), ("08:30", True)]

@pytest.mark.parametrize("body", [
    {"startTime": "10:00", "endTime": "09:00", "slotDuration": 15, "maxOrdersPerSlot": 3},
    {"startTime": "09:00", "endTime": "10:00", "slotDuration": 7, "maxOrdersPerSlot": 3},
    {"startTime": "09:00", "endTime": "24:30", "slotDuration": 15, "maxOrdersPerSlot": 3},
    {"startTime": "09:00", "endTime": "10:00", "slotDuration": 15, "maxOrdersPerSlot": 0},
    {"startTime": "9am", "endTime": "10:00", "slotDuration": 15, "maxOrdersPerSlot": 3},
])
def test_admin_config_validation(client, body):
    login_admin(client)
    r = client.patch("/api/v1/admin/timeslots", json=body)
    assert r.status_code == 422

def test_slot_holds_are_atomic_and_bounded(app_ctx):
    day = FIXED_NOW.date()
    assert svc.reserve_slot(day, "09:00", 2) is True
    assert svc.reserve_slot(day, "09:00", 2) is True
    assert svc.reserve_slot(day, "09:00", 2) is False
    db.session.commit()
    assert svc.slot_load(day) == {"09:00": 2}

    svc.release_slot(day, "09:00")
    db.session.commit()
    assert svc.reserve_slot(day, "09:00", 2) is True
    db.session.commit()

    # счётчик не уходит ниже нуля
    for _ in range(5):
        svc.release_slot(day, "09:30")
    db.session.commit()
    assert "09:30" not in svc.slot_load(day)
