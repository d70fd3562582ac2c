from .user import Role, User
from .customer import Customer
from .menu import Category, MenuItem
from .location import PickupLocation
from .time_slot import TimeSlotConfig, SlotHold
from .order import Order, OrderItem, OrderStatus, PaymentStatus

__all__ = [
    "Role", "User", "Customer",
    "Category", "MenuItem", "PickupLocation",
    "TimeSlotConfig", "SlotHold",
    "Order", "OrderItem", "OrderStatus", "PaymentStatus",
]
