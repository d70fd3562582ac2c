from __future__ import annotations
import hashlib
import hmac
import re
from datetime import datetime, timedelta
from decimal import Decimal
import pytest
from razorpay.errors import ServerError

from app import create_app
from extensions import db
from models import (
    Category, MenuItem, Order, OrderStatus, PaymentStatus, PickupLocation, SlotHold, TimeSlotConfig, User,
)
from blueprints.orders import services as orders
from blueprints.orders.payments import (
    GATEWAY_EXTENSION_KEY, GatewayOrder, PaymentGatewayError, RazorpayClient,
)
from blueprints.auth.routes import reset_rate_limits
from blueprints.timeslots import services as slots

FIXED_NOW = datetime(2026, 10, 19, 8, 0)
SECRET = "test_secret"


class FakeGateway:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def create_order(self, *, amount, currency, receipt, notes=None):
        if self.fail:
            raise PaymentGatewayError("gateway unreachable")
        self.calls.append({"amount": amount, "currency": currency, "receipt": receipt})
        return GatewayOrder(id=f"order_{len(self.calls)}", amount=amount, currency=currency, receipt=receipt)

    def verify_signature(self, order_id, payment_id, signature):
        return hmac.compare_digest(sign(order_id, payment_id), signature)


def sign(order_id: str, payment_id: str) -> str:
    return hmac.new(SECRET.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


@pytest.fixture()
def app_ctx(monkeypatch):
    monkeypatch.setattr(slots, "shop_now", lambda: FIXED_NOW)
    reset_rate_limits()
    app = create_app("dev")
    app.config.update(TESTING=True, WTF_CSRF_ENABLED=False, RAZORPAY_KEY_ID="rzp_test_key")
    app.extensions[GATEWAY_EXTENSION_KEY] = FakeGateway()
    with app.app_context():
        db.create_all()
        for name, role in (("admin", "ADMIN"), ("counter", "STAFF")):
            u = User(username=name, role=role)
            u.set_password("pass12345")
            db.session.add(u)
        cat = Category(name="Coffee", sort_order=1)
        db.session.add(cat)
        db.session.flush()
        db.session.add_all([
            MenuItem(category_id=cat.id, name="Espresso", price=Decimal("120.00"), sort_order=1),
            MenuItem(category_id=cat.id, name="Latte", price=Decimal("180.50"), sort_order=2),
            MenuItem(category_id=cat.id, name="Retired Brew", price=Decimal("99.00"), is_active=False),
            PickupLocation(name="Main Counter", sort_order=1),
            PickupLocation(name="Closed Kiosk", sort_order=2, is_active=False),
            TimeSlotConfig(start_time="09:00", end_time="10:00", slot_duration=15, max_orders_per_slot=2),
        ])
        db.session.commit()
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture()
def client(app_ctx):
    return app_ctx.test_client()

def login(client, username="admin"):
    r = client.post("/api/v1/auth/login", json={"username": username, "password": "pass12345"})
    assert r.status_code == 200

def ids():
    espresso = MenuItem.query.filter_by(name="Espresso").one().id
    latte = MenuItem.query.filter_by(name="Latte").one().id
    loc = PickupLocation.query.filter_by(name="Main Counter").one().id
    return espresso, latte, loc

def order_body(**over):
    espresso, latte, loc = ids()
    body = {
        "customerName": "Asha",
        "customerMobile": "9876543210",
        "pickupLocationId": loc,
        "pickupTime": "09:15",
        "items": [
            {"menuItemId": espresso, "quantity": 2, "cupNames": ["Asha", " Ravi "]},
            {"menuItemId": latte, "quantity": 1},
        ],
    }
    body.update(over)
    return body

def place(client, **over):
    r = client.post("/api/v1/orders", json=order_body(**over))
    return r

def place_paid(client, **over):
    r = place(client, **over)
    assert r.status_code == 201, r.get_json()
    js = r.get_json()
    gw_id = js["gateway_order_id"]
    v = client.post("/api/v1/orders/verify", json={
        "razorpay_order_id": gw_id,
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": sign(gw_id, "pay_1"),
    })
    assert v.status_code == 200
    return v.get_json()["order"]


# ---------- номер заказа ----------
def test_order_number_format():
    num = orders.generate_order_number(now_ms=1_700_000_000_000)
    assert re.match(r"^ORD-[0-9A-Z]+-[0-9A-Z]{3}$", num)
    assert num.split("-")[1] == orders._base36(1_700_000_000_000)

def test_razorpay_client_checks_signature():
    gw = RazorpayClient("rzp_test_key", SECRET)
    good = sign("order_1", "pay_1")
    assert gw.verify_signature("order_1", "pay_1", good)
    assert not gw.verify_signature("order_1", "pay_2", good)
    assert not gw.verify_signature("order_1", "pay_1", "")

def test_razorpay_client_wraps_gateway_errors(monkeypatch):
    gw = RazorpayClient("rzp_test_key", SECRET)

    def rejected(data=None, **kwargs):
        raise ServerError("upstream down")

    monkeypatch.setattr(gw.client.order, "create", rejected)
    with pytest.raises(PaymentGatewayError):
        gw.create_order(amount=100, currency="INR", receipt="ORD-1")

    monkeypatch.setattr(gw.client.order, "create",
                        lambda data=None, **kw: {"id": "order_X", "amount": data["amount"], "currency": "INR"})
    assert gw.create_order(amount=100, currency="INR", receipt="ORD-1") == GatewayOrder("order_X", 100, "INR", "ORD-1")

def test_razorpay_client_needs_credentials():
    with pytest.raises(PaymentGatewayError):
        RazorpayClient("", "")


# ---------- создание ----------
def test_create_order_pending(client, app_ctx):
    r = place(client)
    assert r.status_code == 201
    js = r.get_json()
    order = js["order"]
    assert order["status"] == "PENDING" and order["payment_status"] == "PENDING"
    assert order["total_amount"] == pytest.approx(420.5)
    assert order["pickup_slot"] == "09:15"
    assert order["pickup_display"] == "9:15 AM"
    assert order["pickup_location"]["name"] == "Main Counter"
    assert order["items"][0]["cup_names"] == ["Asha", "Ravi"]
    assert js["gateway_key_id"] == "rzp_test_key"
    assert js["amount"] == 42050 and js["currency"] == "INR"

    gw = app_ctx.extensions[GATEWAY_EXTENSION_KEY]
    assert gw.calls[0]["receipt"] == order["order_number"]
    # место в слоте уже удержано
    assert slots.slot_load(FIXED_NOW.date()) == {"09:15": 1}

@pytest.mark.parametrize("over, code", [
    ({"customerMobile": "12345"}, "invalid_mobile"),
    ({"customerMobile": "5876543210"}, "invalid_mobile"),
    ({"customerName": "   "}, "missing_fields"),
    ({"pickupTime": "09:07"}, "invalid_pickup_time"),
    ({"pickupTime": "25:00"}, "invalid_pickup_time"),
])
def test_create_order_rejects_bad_input(client, over, code):
    r = place(client, **over)
    assert r.status_code == 400
    assert r.get_json()["error"] == code
    assert Order.query.count() == 0

def test_create_order_missing_fields(client):
    r = client.post("/api/v1/orders", json={"customerName": "Asha"})
    assert r.status_code == 400
    assert r.get_json()["error"] == "missing_required_fields"

def test_create_order_inactive_location_and_item(client):
    closed = PickupLocation.query.filter_by(name="Closed Kiosk").one().id
    r = place(client, pickupLocationId=closed)
    assert r.status_code == 400 and r.get_json()["error"] == "invalid_pickup_location"

    retired = MenuItem.query.filter_by(name="Retired Brew").one().id
    r = place(client, items=[{"menuItemId": retired, "quantity": 1}])
    assert r.status_code == 400 and r.get_json()["error"] == "menu_item_unavailable"

def test_create_order_inside_lead_time(client, monkeypatch):
    monkeypatch.setattr(slots, "shop_now", lambda: datetime(2026, 10, 19, 9, 5))
    r = place(client, pickupTime="09:15")
    assert r.status_code == 409
    assert r.get_json()["error"] == "slot_unavailable"

def test_slot_capacity_enforced_by_holds(client):
    assert place(client).status_code == 201
    assert place(client).status_code == 201
    # оба заказа ещё не оплачены, но места удержаны
    r = place(client)
    assert r.status_code == 409
    assert r.get_json()["error"] == "slot_full"
    assert Order.query.count() == 2

def test_gateway_failure_returns_502(client, app_ctx):
    app_ctx.extensions[GATEWAY_EXTENSION_KEY] = FakeGateway(fail=True)
    r = place(client)
    assert r.status_code == 502
    assert Order.query.count() == 0
    assert slots.slot_load(FIXED_NOW.date()) == {}


# ---------- оплата ----------
def test_verify_payment_confirms_order(client):
    order = place_paid(client)
    assert order["payment_status"] == "PAID"
    assert order["status"] == "CONFIRMED"
    row = Order.query.filter_by(order_number=order["order_number"]).one()
    assert row.gateway_payment_id == "pay_1"

    # повторная проверка идемпотентна
    r = client.post("/api/v1/orders/verify", json={
        "razorpay_order_id": row.gateway_order_id,
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": sign(row.gateway_order_id, "pay_1"),
    })
    assert r.status_code == 200 and r.get_json()["order"]["status"] == "CONFIRMED"

def test_verify_payment_bad_signature(client):
    gw_id = place(client).get_json()["gateway_order_id"]
    r = client.post("/api/v1/orders/verify", json={
        "razorpay_order_id": gw_id,
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": "deadbeef",
    })
    assert r.status_code == 400
    assert r.get_json()["error"] == "invalid_signature"
    row = Order.query.filter_by(gateway_order_id=gw_id).one()
    assert row.payment_status == "PENDING" and row.status == "PENDING"

def test_verify_payment_unknown_order(client):
    r = client.post("/api/v1/orders/verify", json={
        "razorpay_order_id": "order_nope",
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": sign("order_nope", "pay_1"),
    })
    assert r.status_code == 404
    assert client.post("/api/v1/orders/verify", json={}).status_code == 400

def test_paid_orders_fill_public_slots(client):
    place_paid(client)
    place_paid(client)
    slots_js = client.get("/api/v1/timeslots").get_json()["slots"]
    avail = {s["time"]: s["available"] for s in slots_js}
    assert avail["09:15"] is False
    assert avail["09:30"] is True


# ---------- чтение ----------
def test_get_order_by_id_and_number(client):
    order = place(client).get_json()["order"]
    r = client.get(f"/api/v1/orders?id={order['id']}")
    assert r.status_code == 200 and r.get_json()["order"]["order_number"] == order["order_number"]
    r = client.get(f"/api/v1/orders?orderNumber={order['order_number']}")
    assert r.status_code == 200
    r = client.get(f"/api/v1/orders/{order['order_number']}")
    assert r.status_code == 200 and len(r.get_json()["order"]["items"]) == 2

    assert client.get("/api/v1/orders").status_code == 400
    assert client.get("/api/v1/orders?id=999").status_code == 404
    assert client.get("/api/v1/orders/ORD-NOPE-000").status_code == 404

def test_my_orders_requires_customer(client):
    assert client.get("/api/v1/orders/mine").status_code == 401
    otp = client.post("/api/v1/auth/customer/send-otp", json={"mobile": "9876543210"}).get_json()["demo_otp"]
    r = client.post("/api/v1/auth/customer/verify-otp", json={"mobile": "9876543210", "otp": otp, "name": "Asha"})
    assert r.status_code == 200
    place(client)
    mine = client.get("/api/v1/orders/mine").get_json()["orders"]
    assert len(mine) == 1


# ---------- статусы ----------
def test_admin_status_flow_and_invalid_transitions(client):
    order = place_paid(client)
    login(client)
    url = f"/api/v1/admin/orders/{order['id']}"

    r = client.patch(url, json={"status": "READY"})
    assert r.status_code == 409 and r.get_json()["error"] == "invalid_transition"

    for st in ("PREPARING", "READY", "COMPLETED"):
        r = client.patch(url, json={"status": st})
        assert r.status_code == 200
        assert r.get_json()["order"]["status"] == st

    r = client.patch(url, json={"status": "CANCELLED"})
    assert r.status_code == 409 and r.get_json()["error"] == "order_closed"

    r = client.patch(url, json={"status": "SHIPPED"})
    assert r.status_code == 400 and r.get_json()["error"] == "unknown_status"

def test_cancel_releases_hold(client):
    order = place_paid(client)
    place(client)
    assert slots.slot_load(FIXED_NOW.date()) == {"09:15": 2}
    login(client)
    r = client.patch(f"/api/v1/admin/orders/{order['id']}", json={"status": "cancelled"})
    assert r.status_code == 200
    assert slots.slot_load(FIXED_NOW.date()) == {"09:15": 1}
    assert place(client).status_code == 201

def test_admin_orders_list_filters(client):
    a = place_paid(client)
    place_paid(client, pickupTime="09:30")
    place(client, pickupTime="09:45")   # не оплачен, в список не попадает
    login(client)

    js = client.get("/api/v1/admin/orders").get_json()
    assert [o["pickup_slot"] for o in js["orders"]] == ["09:15", "09:30"]

    client.patch(f"/api/v1/admin/orders/{a['id']}", json={"status": "PREPARING"})
    js = client.get("/api/v1/admin/orders?status=preparing").get_json()
    assert [o["id"] for o in js["orders"]] == [a["id"]]
    assert len(client.get("/api/v1/admin/orders?status=all&date=2026-10-19").get_json()["orders"]) == 2
    assert client.get("/api/v1/admin/orders?date=2026-10-20").get_json()["orders"] == []
    assert client.get("/api/v1/admin/orders?status=lost").status_code == 400

def test_admin_orders_forbidden_for_staff(client):
    assert client.get("/api/v1/admin/orders").status_code == 401
    login(client, "counter")
    assert client.get("/api/v1/admin/orders").status_code == 403


# ---------- касса ----------
def test_counter_board_and_advance(client):
    a = place_paid(client)
    b = place_paid(client, pickupTime="09:30")
    place(client, pickupTime="09:45")
    login(client, "counter")

    js = client.get("/api/v1/counter/orders").get_json()
    assert js["date"] == "2026-10-19"
    assert [o["id"] for o in js["columns"]["CONFIRMED"]] == [a["id"], b["id"]]
    assert js["columns"]["CONFIRMED"][0]["next_status"] == "PREPARING"

    for expected in ("PREPARING", "READY", "COMPLETED"):
        r = client.post(f"/api/v1/counter/orders/{a['id']}/advance")
        assert r.status_code == 200
        assert r.get_json()["order"]["status"] == expected
    r = client.post(f"/api/v1/counter/orders/{a['id']}/advance")
    assert r.status_code == 409

    cols = client.get("/api/v1/counter/orders").get_json()["columns"]
    assert [o["id"] for o in cols["CONFIRMED"]] == [b["id"]]
    assert cols["READY"] == [] and cols["PREPARING"] == []

def test_counter_requires_login(client):
    assert client.get("/api/v1/counter/orders").status_code == 401


# ---------- дашборд ----------
def test_dashboard_summary(client):
    a = place_paid(client)
    place_paid(client, pickupTime="09:30")
    place(client, pickupTime="09:45")
    login(client)
    client.patch(f"/api/v1/admin/orders/{a['id']}", json={"status": "CANCELLED"})

    js = client.get("/api/v1/admin/dashboard/summary").get_json()
    assert js["ok"] is True
    assert js["date"] == "2026-10-19"
    assert js["orders"]["CONFIRMED"] == 1
    assert js["orders"]["CANCELLED"] == 1
    assert "PENDING" not in js["orders"]
    assert js["revenue"] == pytest.approx(420.5)
    assert js["booked"] == {"09:30": 1}
    assert js["slot_load"] == {"09:30": 1, "09:45": 1}


# ---------- истечение неоплаченных ----------
def test_expire_pending_releases_holds(client, app_ctx):
    place(client)
    paid = place_paid(client)
    stale = Order.query.filter_by(payment_status=PaymentStatus.PENDING.value).one()
    stale.created_at = datetime.utcnow() - timedelta(minutes=45)
    db.session.commit()

    n = orders.expire_pending(30)
    assert n == 1
    db.session.refresh(stale)
    assert stale.status == OrderStatus.CANCELLED.value
    assert stale.payment_status == PaymentStatus.FAILED.value
    assert slots.slot_load(FIXED_NOW.date()) == {"09:15": 1}
    assert Order.query.filter_by(order_number=paid["order_number"]).one().status == "CONFIRMED"

def test_expire_pending_cli(client, app_ctx):
    place(client)
    Order.query.one().created_at = datetime.utcnow() - timedelta(hours=2)
    db.session.commit()

    runner = app_ctx.test_cli_runner()
    result = runner.invoke(args=["orders", "expire-pending", "--minutes", "30"])
    assert result.exit_code == 0
    assert "expired 1 pending orders" in result.output
    assert SlotHold.query.one().held == 0


# ---------- из корзины ----------
def test_order_from_cart(client):
    espresso, latte, loc = ids()
    assert client.post("/api/v1/orders/from-cart").get_json()["error"] == "cart_empty"

    client.post("/api/v1/cart/items", json={"menuItemId": espresso})
    client.post("/api/v1/cart/items", json={"menuItemId": espresso})
    client.put(f"/api/v1/cart/items/{espresso}/cup-names", json={"name": "Ravi", "index": 1})
    client.put("/api/v1/cart/checkout", json={
        "customerName": "Asha", "customerMobile": "9876543210",
        "pickupLocationId": loc, "pickupTime": "09:30",
    })

    r = client.post("/api/v1/orders/from-cart")
    assert r.status_code == 201, r.get_json()
    js = r.get_json()
    assert js["order"]["items"][0]["cup_names"] == ["Asha", "Ravi"]
    assert js["order"]["total_amount"] == pytest.approx(240.0)

    gw_id = js["gateway_order_id"]
    client.post("/api/v1/orders/verify", json={
        "razorpay_order_id": gw_id, "razorpay_payment_id": "pay_9",
        "razorpay_signature": sign(gw_id, "pay_9"),
    })
    assert client.get("/api/v1/cart").get_json()["cart"]["items"] == []
