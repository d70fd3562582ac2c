from sqlalchemy.orm import Mapped, mapped_column

from extensions import db

class PickupLocation(db.Model):
    __tablename__ = "pickup_locations"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    address: Mapped[str | None] = mapped_column(db.String(255))
    sort_order: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(db.Boolean, nullable=False, default=True)
