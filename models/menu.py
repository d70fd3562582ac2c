from __future__ import annotations
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from extensions import db

class Category(db.Model):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    sort_order: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)

    items = relationship("MenuItem", back_populates="category", order_by="MenuItem.sort_order")

    def __repr__(self):
        return f"<Category {self.name}>"


class MenuItem(db.Model):
    __tablename__ = "menu_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False)
    name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(db.String(500))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)  # INR
    image: Mapped[str | None] = mapped_column(db.String(500))
    sort_order: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)

    category = relationship("Category", back_populates="items")

    __table_args__ = (
        Index("ix_menu_items_category", "category_id"),
    )

    def __repr__(self):
        return f"<MenuItem {self.name}>"
