# blueprints/timeslots/services.py
from __future__ import annotations
import logging
import re
from collections import Counter
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Mapping, Optional

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from flask import current_app
from sqlalchemy import update

from extensions import db
from models import Order, OrderStatus, PaymentStatus, SlotHold, TimeSlotConfig
from models.time_slot import (
    DEFAULT_DURATION, DEFAULT_END, DEFAULT_MAX_ORDERS, DEFAULT_START,
)
from blueprints.core.filters import fmt_hhmm, fmt_time_12h

log = logging.getLogger(__name__)

LEAD_TIME = timedelta(minutes=15)          # минимальный запас до выдачи
ALLOWED_DURATIONS = (10, 15, 20, 30, 60)   # варианты в админке
_HHMM = re.compile(r"^(\d{2}):(\d{2})$")


class SlotConfigError(ValueError):
    """Кривая конфигурация окна: ловим до генерации слотов."""


@dataclass
class Slot:
    time: str
    displayTime: str
    available: bool


# ---------- время ----------
def shop_tz():
    name = current_app.config.get("SHOP_TIMEZONE", "Asia/Kolkata")
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        log.warning("unknown SHOP_TIMEZONE %s, falling back to UTC", name)
        return timezone.utc

def shop_now() -> datetime:
    """Текущее локальное время кофейни без tzinfo (так хранится pickup_time)."""
    return datetime.now(shop_tz()).replace(tzinfo=None)

def parse_hhmm(value: str, field: str = "time") -> time:
    m = _HHMM.match(value or "") if isinstance(value, str) else None
    if not m:
        raise SlotConfigError(f"{field} must be HH:MM, got {value!r}")
    hh, mm = int(m.group(1)), int(m.group(2))
    if hh > 23 or mm > 59:
        raise SlotConfigError(f"{field} is out of range: {value!r}")
    return time(hh, mm)


# ---------- калькулятор ----------
def _not_count(value) -> bool:
    # bool тоже int, но True минутой не считается
    return isinstance(value, bool) or not isinstance(value, int)

def generate_slots(
    start_time: str,
    end_time: str,
    slot_duration: int,
    booked: Mapping[str, int],
    max_orders_per_slot: int,
    now: Optional[datetime] = None,
) -> List[Slot]:
    """
    Слоты [start_time, end_time) с шагом slot_duration минут на сегодня.
    Слот недоступен, если начинается раньше now + 15 минут
    или в нём уже max_orders_per_slot заказов.
    """
    start = parse_hhmm(start_time, "start_time")
    end = parse_hhmm(end_time, "end_time")
    if _not_count(slot_duration) or slot_duration <= 0:
        raise SlotConfigError(f"slot_duration must be a positive number of minutes, got {slot_duration!r}")
    if _not_count(max_orders_per_slot) or max_orders_per_slot <= 0:
        raise SlotConfigError(f"max_orders_per_slot must be positive, got {max_orders_per_slot!r}")

    now = now or shop_now()
    today = now.date()
    cursor = datetime.combine(today, start)
    end_dt = datetime.combine(today, end)
    cutoff = now + LEAD_TIME
    step = timedelta(minutes=slot_duration)

    slots: List[Slot] = []
    while cursor < end_dt:
        key = fmt_hhmm(cursor)
        too_soon = cursor < cutoff
        full = booked.get(key, 0) >= max_orders_per_slot
        slots.append(Slot(time=key, displayTime=fmt_time_12h(cursor), available=not too_soon and not full))
        cursor += step
    return slots


# ---------- данные ----------
def get_or_create_config() -> TimeSlotConfig:
    cfg = TimeSlotConfig.query.order_by(TimeSlotConfig.id).first()
    if cfg is None:
        cfg = TimeSlotConfig(
            start_time=DEFAULT_START,
            end_time=DEFAULT_END,
            slot_duration=DEFAULT_DURATION,
            max_orders_per_slot=DEFAULT_MAX_ORDERS,
        )
        db.session.add(cfg)
        db.session.commit()
        log.info("time slot config created with defaults")
    return cfg

def update_config(*, start_time: str, end_time: str, slot_duration: int, max_orders_per_slot: int) -> TimeSlotConfig:
    if parse_hhmm(end_time, "end_time") <= parse_hhmm(start_time, "start_time"):
        raise SlotConfigError("end_time must be after start_time")
    if slot_duration not in ALLOWED_DURATIONS:
        raise SlotConfigError(f"slot_duration must be one of {ALLOWED_DURATIONS}")
    if max_orders_per_slot < 1:
        raise SlotConfigError("max_orders_per_slot must be >= 1")

    cfg = get_or_create_config()
    cfg.start_time = start_time
    cfg.end_time = end_time
    cfg.slot_duration = slot_duration
    cfg.max_orders_per_slot = max_orders_per_slot
    db.session.commit()
    log.info("time slot config updated", extra={"event": "timeslot_config_updated"})
    return cfg

def config_to_dict(cfg: TimeSlotConfig) -> dict:
    return {
        "id": cfg.id,
        "startTime": cfg.start_time,
        "endTime": cfg.end_time,
        "slotDuration": cfg.slot_duration,
        "maxOrdersPerSlot": cfg.max_orders_per_slot,
    }

def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time(0, 0))
    return start, start + timedelta(days=1)

def booked_tally(day: date) -> Dict[str, int]:
    """Оплаченные и не отменённые заказы дня, сгруппированные по HH:MM выдачи."""
    lo, hi = _day_bounds(day)
    rows = (db.session.query(Order.pickup_time)
            .filter(Order.pickup_time >= lo, Order.pickup_time < hi)
            .filter(Order.payment_status == PaymentStatus.PAID.value)
            .filter(Order.status != OrderStatus.CANCELLED.value)
            .all())
    return dict(Counter(fmt_hhmm(pt) for (pt,) in rows))

def available_slots(now: Optional[datetime] = None) -> dict:
    now = now or shop_now()
    cfg = get_or_create_config()
    slots = generate_slots(
        cfg.start_time, cfg.end_time, cfg.slot_duration,
        booked_tally(now.date()), cfg.max_orders_per_slot, now=now,
    )
    return {
        "slots": [asdict(s) for s in slots],
        "config": {
            "startTime": cfg.start_time,
            "endTime": cfg.end_time,
            "slotDuration": cfg.slot_duration,
        },
    }

def find_slot(pickup_time: str, now: Optional[datetime] = None) -> Optional[Slot]:
    """Слот из сегодняшней сетки с таким HH:MM или None."""
    now = now or shop_now()
    cfg = get_or_create_config()
    for s in generate_slots(cfg.start_time, cfg.end_time, cfg.slot_duration,
                            booked_tally(now.date()), cfg.max_orders_per_slot, now=now):
        if s.time == pickup_time:
            return s
    return None


# ---------- удержание мест ----------
def _ensure_hold_row(day: date, slot_time: str) -> None:
    dialect = db.session.get_bind().dialect.name
    values = {"pickup_date": day, "slot_time": slot_time, "held": 0}
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
        db.session.execute(insert(SlotHold).values(**values).on_conflict_do_nothing())
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
        db.session.execute(insert(SlotHold).values(**values).on_conflict_do_nothing())
    elif not SlotHold.query.filter_by(pickup_date=day, slot_time=slot_time).first():
        db.session.add(SlotHold(**values))
        db.session.flush()

def reserve_slot(day: date, slot_time: str, max_orders: int) -> bool:
    """
    Атомарно занимает место в слоте: UPDATE ... WHERE held < max.
    Возвращает False, если слот уже заполнен. Коммит делает вызывающий.
    """
    _ensure_hold_row(day, slot_time)
    res = db.session.execute(
        update(SlotHold)
        .where(SlotHold.pickup_date == day, SlotHold.slot_time == slot_time, SlotHold.held < max_orders)
        .values(held=SlotHold.held + 1)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1

def release_slot(day: date, slot_time: str) -> None:
    db.session.execute(
        update(SlotHold)
        .where(SlotHold.pickup_date == day, SlotHold.slot_time == slot_time, SlotHold.held > 0)
        .values(held=SlotHold.held - 1)
        .execution_options(synchronize_session=False)
    )

def slot_load(day: date) -> Dict[str, int]:
    """Текущее число удержаний по слотам дня (для дашборда)."""
    rows = SlotHold.query.filter(SlotHold.pickup_date == day, SlotHold.held > 0).order_by(SlotHold.slot_time).all()
    return {r.slot_time: r.held for r in rows}
