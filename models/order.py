from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import DateTime, ForeignKey, Index, JSON, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from extensions import db

class OrderStatus(str, PyEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

class PaymentStatus(str, PyEnum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class Order(db.Model):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_number: Mapped[str] = mapped_column(db.String(32), unique=True, index=True, nullable=False)
    customer_id: Mapped[int | None] = mapped_column(ForeignKey("customers.id", ondelete="SET NULL"))
    customer_name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    customer_mobile: Mapped[str] = mapped_column(db.String(15), nullable=False)
    pickup_location_id: Mapped[int] = mapped_column(ForeignKey("pickup_locations.id", ondelete="RESTRICT"), nullable=False)
    pickup_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)  # локальное время кофейни
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(db.String(16), nullable=False, default=OrderStatus.PENDING.value)
    payment_status: Mapped[str] = mapped_column(db.String(16), nullable=False, default=PaymentStatus.PENDING.value)
    gateway_order_id: Mapped[str | None] = mapped_column(db.String(64), unique=True)
    gateway_payment_id: Mapped[str | None] = mapped_column(db.String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    pickup_location = relationship("PickupLocation")
    customer = relationship("Customer")

    __table_args__ = (
        Index("ix_orders_pickup_time", "pickup_time"),
        Index("ix_orders_status_payment", "status", "payment_status"),
    )

    def __repr__(self):
        return f"<Order {self.order_number}>"


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id: Mapped[int] = mapped_column(ForeignKey("menu_items.id", ondelete="RESTRICT"), nullable=False)
    quantity: Mapped[int] = mapped_column(db.Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    cup_names: Mapped[list | None] = mapped_column(JSON)  # одно имя на стакан

    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem")
