from __future__ import annotations
from datetime import datetime

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, mapped_column

from extensions import db

class Customer(db.Model):
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(db.String(120), nullable=False, default="")
    mobile: Mapped[str] = mapped_column(db.String(15), unique=True, index=True, nullable=False)
    # храним только хэш одноразового кода
    otp_hash: Mapped[str | None] = mapped_column(db.String(255))
    otp_expiry: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Customer {self.mobile}>"
