from __future__ import annotations
from datetime import datetime, time
from decimal import Decimal

def fmt_hhmm(value: time | datetime | None) -> str:
    if not value:
        return ""
    return value.strftime("%H:%M")

def fmt_time_12h(value: time | datetime | None) -> str:
    """09:05 -> '9:05 AM' (формат, который видит покупатель)."""
    if not value:
        return ""
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"

def fmt_price(value: Decimal | float | int | None) -> str:
    if value is None:
        return ""
    amount = Decimal(value).quantize(Decimal("1"))
    return f"₹{amount:,}"
