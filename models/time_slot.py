from __future__ import annotations
from datetime import date

from sqlalchemy import Date, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from extensions import db

DEFAULT_START = "09:00"
DEFAULT_END = "22:00"
DEFAULT_DURATION = 15
DEFAULT_MAX_ORDERS = 5

class TimeSlotConfig(db.Model):
    """Окно приёма заказов. Ожидается одна строка, создаётся лениво."""
    __tablename__ = "time_slot_config"

    id: Mapped[int] = mapped_column(primary_key=True)
    start_time: Mapped[str] = mapped_column(db.String(5), nullable=False, default=DEFAULT_START)   # HH:MM
    end_time: Mapped[str] = mapped_column(db.String(5), nullable=False, default=DEFAULT_END)       # HH:MM
    slot_duration: Mapped[int] = mapped_column(db.Integer, nullable=False, default=DEFAULT_DURATION)  # минуты
    max_orders_per_slot: Mapped[int] = mapped_column(db.Integer, nullable=False, default=DEFAULT_MAX_ORDERS)


class SlotHold(db.Model):
    """Счётчик занятых мест в слоте; увеличивается атомарным условным UPDATE."""
    __tablename__ = "slot_holds"

    id: Mapped[int] = mapped_column(primary_key=True)
    pickup_date: Mapped[date] = mapped_column(Date, nullable=False)
    slot_time: Mapped[str] = mapped_column(db.String(5), nullable=False)
    held: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("pickup_date", "slot_time", name="uq_slot_hold_date_time"),
    )
