# blueprints/orders/services.py
from __future__ import annotations
import logging
import secrets
import string
import time as _time
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import update

from extensions import db
from models import (
    Customer, MenuItem, Order, OrderItem, OrderStatus, PaymentStatus, PickupLocation,
)
from blueprints.auth.services import is_valid_mobile
from blueprints.core.filters import fmt_hhmm, fmt_price, fmt_time_12h
from blueprints.timeslots import services as slots
from .payments import GatewayOrder, get_gateway

log = logging.getLogger(__name__)

_B36 = string.digits + string.ascii_uppercase

ACTIVE_STATUSES = (OrderStatus.CONFIRMED.value, OrderStatus.PREPARING.value, OrderStatus.READY.value)
TERMINAL_STATUSES = (OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value)

# линейный поток выдачи на кассе
NEXT_STATUS: Dict[str, str] = {
    OrderStatus.CONFIRMED.value: OrderStatus.PREPARING.value,
    OrderStatus.PREPARING.value: OrderStatus.READY.value,
    OrderStatus.READY.value: OrderStatus.COMPLETED.value,
}


class SlotUnavailable(RuntimeError):
    """Слот слишком близко по времени или уже заполнен."""


class InvalidTransition(ValueError):
    pass


@dataclass
class LineIn:
    menu_item_id: int
    quantity: int
    cup_names: List[str]


# ---------- номер заказа ----------
def _base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_B36[r])
    return "".join(reversed(out))

def generate_order_number(now_ms: Optional[int] = None) -> str:
    """ORD-<метка времени в мс, base36>-<3 случайных символа>."""
    ts = _base36(now_ms if now_ms is not None else int(_time.time() * 1000))
    rnd = "".join(secrets.choice(_B36) for _ in range(3))
    return f"ORD-{ts}-{rnd}"


# ---------- сериализация ----------
def serialize_order(o: Order) -> dict:
    loc = o.pickup_location
    return {
        "id": o.id,
        "order_number": o.order_number,
        "customer_name": o.customer_name,
        "customer_mobile": o.customer_mobile,
        "pickup_time": o.pickup_time.isoformat(timespec="minutes"),
        "pickup_slot": fmt_hhmm(o.pickup_time),
        "pickup_display": fmt_time_12h(o.pickup_time),
        "pickup_location": {"id": loc.id, "name": loc.name, "address": loc.address} if loc else None,
        "total_amount": float(o.total_amount),
        "total_display": fmt_price(o.total_amount),
        "status": o.status,
        "payment_status": o.payment_status,
        "next_status": NEXT_STATUS.get(o.status),
        "created_at": o.created_at.isoformat(timespec="seconds") + "Z",
        "items": [
            {
                "menu_item_id": it.menu_item_id,
                "name": it.menu_item.name if it.menu_item else None,
                "quantity": it.quantity,
                "unit_price": float(it.unit_price),
                "cup_names": list(it.cup_names or []),
            }
            for it in o.items
        ],
    }


# ---------- создание ----------
def _load_menu_items(lines: Iterable[LineIn]) -> Dict[int, MenuItem]:
    ids = {ln.menu_item_id for ln in lines}
    rows = MenuItem.query.filter(MenuItem.id.in_(ids), MenuItem.is_active.is_(True)).all()
    if len(rows) != len(ids):
        raise ValueError("MENU_ITEM_UNAVAILABLE")
    return {m.id: m for m in rows}

def create_order(
    *,
    customer_name: str,
    customer_mobile: str,
    pickup_location_id: int,
    pickup_time: str,
    lines: List[LineIn],
    customer: Optional[Customer] = None,
    now: Optional[datetime] = None,
) -> tuple[Order, GatewayOrder]:
    """
    Проверяет корзину, занимает место в слоте и регистрирует заказ в шлюзе.
    Заказ создаётся в статусе PENDING/PENDING до подтверждения оплаты.
    """
    if not customer_name.strip() or not lines:
        raise ValueError("MISSING_FIELDS")
    if not is_valid_mobile(customer_mobile):
        raise ValueError("INVALID_MOBILE")

    loc: PickupLocation | None = db.session.get(PickupLocation, pickup_location_id)
    if loc is None or not loc.is_active:
        raise ValueError("INVALID_PICKUP_LOCATION")

    menu = _load_menu_items(lines)

    now = now or slots.shop_now()
    try:
        slot_t = slots.parse_hhmm(pickup_time, "pickup_time")
    except slots.SlotConfigError:
        raise ValueError("INVALID_PICKUP_TIME") from None
    slot = slots.find_slot(pickup_time, now=now)
    if slot is None:
        raise ValueError("INVALID_PICKUP_TIME")
    if not slot.available:
        raise SlotUnavailable("SLOT_UNAVAILABLE")

    total = Decimal("0")
    items: List[OrderItem] = []
    for ln in lines:
        m = menu[ln.menu_item_id]
        total += m.price * ln.quantity
        items.append(OrderItem(menu_item_id=m.id, quantity=ln.quantity, unit_price=m.price,
                               cup_names=list(ln.cup_names or [])))

    order_number = generate_order_number()
    # шлюз вызываем до записи в БД, чтобы не держать блокировку на время HTTP-запроса
    gw_order = get_gateway().create_order(
        amount=int((total * 100).to_integral_value()),
        currency="INR",
        receipt=order_number,
        notes={"customerName": customer_name, "customerMobile": customer_mobile},
    )

    cfg = slots.get_or_create_config()
    if not slots.reserve_slot(now.date(), pickup_time, cfg.max_orders_per_slot):
        db.session.rollback()
        log.info("slot %s is full, order rejected", pickup_time, extra={"event": "slot_full"})
        raise SlotUnavailable("SLOT_FULL")

    order = Order(
        order_number=order_number,
        customer_id=customer.id if customer else None,
        customer_name=customer_name.strip(),
        customer_mobile=customer_mobile,
        pickup_location_id=loc.id,
        pickup_time=datetime.combine(now.date(), slot_t),
        total_amount=total,
        status=OrderStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
        gateway_order_id=gw_order.id,
        items=items,
    )
    db.session.add(order)
    db.session.commit()
    log.info("order %s created for slot %s", order.order_number, pickup_time, extra={"event": "order_created"})
    return order, gw_order


# ---------- оплата ----------
def _guarded_update(order_id: int, expected: Dict[str, str], **values) -> bool:
    """
    UPDATE orders ... WHERE id = :id AND <ожидаемые статусы>.
    False, если другой воркер уже сменил статус. Коммит делает вызывающий.
    """
    conds = [getattr(Order, col) == val for col, val in expected.items()]
    res = db.session.execute(
        update(Order)
        .where(Order.id == order_id, *conds)
        .values(updated_at=datetime.utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1

def verify_payment(gateway_order_id: str, payment_id: str, signature: str) -> Order:
    if not gateway_order_id or not payment_id or not signature:
        raise ValueError("MISSING_FIELDS")
    order: Order | None = Order.query.filter_by(gateway_order_id=gateway_order_id).first()
    if order is None:
        raise LookupError("ORDER_NOT_FOUND")

    if not get_gateway().verify_signature(gateway_order_id, payment_id, signature):
        log.warning("bad payment signature for %s", order.order_number, extra={"event": "payment_bad_signature"})
        raise ValueError("INVALID_SIGNATURE")

    paid = _guarded_update(
        order.id,
        {"status": OrderStatus.PENDING.value, "payment_status": PaymentStatus.PENDING.value},
        status=OrderStatus.CONFIRMED.value,
        payment_status=PaymentStatus.PAID.value,
        gateway_payment_id=payment_id,
    )
    db.session.commit()   # перечитываем заказ из БД
    if not paid:
        # повторное подтверждение той же оплаты не ошибка
        if order.payment_status == PaymentStatus.PAID.value:
            return order
        log.warning("payment for %s arrived after it was %s", order.order_number, order.status,
                    extra={"event": "payment_after_cancel"})
        raise InvalidTransition("ORDER_CANCELLED")
    log.info("order %s paid", order.order_number, extra={"event": "payment_verified"})
    return order


# ---------- статусы ----------
def _release(order: Order) -> None:
    slots.release_slot(order.pickup_time.date(), fmt_hhmm(order.pickup_time))

def change_status(order: Order, new_status: str) -> Order:
    allowed = set(OrderStatus.__members__)
    if new_status not in allowed:
        raise ValueError("UNKNOWN_STATUS")
    old = order.status
    if old in TERMINAL_STATUSES:
        raise InvalidTransition("ORDER_CLOSED")
    if new_status != OrderStatus.CANCELLED.value and NEXT_STATUS.get(old) != new_status:
        raise InvalidTransition("INVALID_TRANSITION")

    if not _guarded_update(order.id, {"status": old}, status=new_status):
        db.session.rollback()
        raise InvalidTransition("STATUS_CHANGED")
    # слот освобождает только тот, чей UPDATE сработал
    if new_status == OrderStatus.CANCELLED.value:
        _release(order)
    db.session.commit()
    log.info("order %s: %s -> %s", order.order_number, old, new_status, extra={"event": "order_status_changed"})
    return order

def advance(order: Order) -> Order:
    nxt = NEXT_STATUS.get(order.status)
    if nxt is None:
        raise InvalidTransition("NO_NEXT_STATUS")
    return change_status(order, nxt)

def expire_pending(older_than_minutes: int, *, now: Optional[datetime] = None) -> int:
    """Отменяет неоплаченные заказы старше N минут и освобождает их слоты."""
    now = now or datetime.utcnow()
    threshold = now - timedelta(minutes=older_than_minutes)
    stale = (Order.query
             .filter(Order.payment_status == PaymentStatus.PENDING.value,
                     Order.status == OrderStatus.PENDING.value,
                     Order.created_at < threshold)
             .all())
    expired = 0
    for o in stale:
        # оплата могла пройти между выборкой и UPDATE
        if _guarded_update(o.id,
                           {"status": OrderStatus.PENDING.value, "payment_status": PaymentStatus.PENDING.value},
                           status=OrderStatus.CANCELLED.value,
                           payment_status=PaymentStatus.FAILED.value):
            _release(o)
            expired += 1
    db.session.commit()
    if expired:
        log.info("expired %d pending orders", expired, extra={"event": "orders_expired"})
    return expired


# ---------- выборки ----------
def _day_filter(q, day: date):
    lo = datetime.combine(day, datetime.min.time())
    return q.filter(Order.pickup_time >= lo, Order.pickup_time < lo + timedelta(days=1))

def list_paid_orders(status: Optional[str] = None, day: Optional[date] = None) -> List[Order]:
    q = Order.query.filter(Order.payment_status == PaymentStatus.PAID.value)
    if status and status != "all":
        q = q.filter(Order.status == status)
    if day:
        q = _day_filter(q, day)
    return q.order_by(Order.pickup_time.asc(), Order.id.asc()).all()

def counter_board(day: date) -> dict:
    """Экран выдачи: оплаченные заказы дня в работе, по колонкам статусов."""
    board: Dict[str, list] = {s: [] for s in ACTIVE_STATUSES}
    q = _day_filter(Order.query, day).filter(
        Order.payment_status == PaymentStatus.PAID.value,
        Order.status.in_(ACTIVE_STATUSES),
    ).order_by(Order.pickup_time.asc(), Order.id.asc())
    for o in q.all():
        board[o.status].append(serialize_order(o))
    return board

def dashboard_summary(day: date) -> dict:
    counts: Dict[str, int] = defaultdict(int)
    revenue = Decimal("0")
    paid = _day_filter(Order.query, day).filter(Order.payment_status == PaymentStatus.PAID.value).all()
    for o in paid:
        counts[o.status] += 1
        if o.status != OrderStatus.CANCELLED.value:
            revenue += o.total_amount
    return {
        "date": day.isoformat(),
        "orders": {s.value: counts.get(s.value, 0) for s in OrderStatus if s != OrderStatus.PENDING},
        "revenue": float(revenue),
        "revenue_display": fmt_price(revenue),
        "booked": slots.booked_tally(day),
        "slot_load": slots.slot_load(day),
    }
