# blueprints/auth/services.py
from __future__ import annotations
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app
from werkzeug.security import check_password_hash, generate_password_hash

from extensions import db
from models import Customer

log = logging.getLogger(__name__)

MOBILE_RE = re.compile(r"^[6-9]\d{9}$")   # индийский мобильный, 10 цифр

def is_valid_mobile(mobile: str | None) -> bool:
    return bool(mobile) and bool(MOBILE_RE.match(mobile))

def generate_otp() -> str:
    return f"{secrets.randbelow(900000) + 100000}"

@dataclass
class OtpIssued:
    mobile: str
    otp: str
    expires_at: datetime

def send_otp(mobile: str, *, now: Optional[datetime] = None) -> OtpIssued:
    """Создаёт/обновляет покупателя и выдаёт новый код. SMS-шлюза нет: код пишется в лог."""
    if not is_valid_mobile(mobile):
        raise ValueError("INVALID_MOBILE")

    now = now or datetime.utcnow()
    otp = generate_otp()
    ttl = int(current_app.config.get("OTP_TTL_MINUTES", 10))
    expires_at = now + timedelta(minutes=ttl)

    customer: Customer | None = Customer.query.filter_by(mobile=mobile).first()
    if customer is None:
        customer = Customer(name="", mobile=mobile)
        db.session.add(customer)
    customer.otp_hash = generate_password_hash(otp)
    customer.otp_expiry = expires_at
    db.session.commit()

    log.info("otp issued for %s: %s", mobile, otp, extra={"event": "otp_issued"})
    return OtpIssued(mobile=mobile, otp=otp, expires_at=expires_at)

def verify_otp(mobile: str, otp: str, name: Optional[str] = None, *, now: Optional[datetime] = None) -> Customer:
    if not mobile or not otp:
        raise ValueError("MISSING_FIELDS")
    customer: Customer | None = Customer.query.filter_by(mobile=mobile).first()
    if customer is None:
        raise LookupError("CUSTOMER_NOT_FOUND")
    if not customer.otp_hash or not check_password_hash(customer.otp_hash, otp):
        raise ValueError("INVALID_OTP")
    now = now or datetime.utcnow()
    if customer.otp_expiry and customer.otp_expiry < now:
        raise ValueError("OTP_EXPIRED")

    customer.otp_hash = None
    customer.otp_expiry = None
    if name and name.strip():
        customer.name = name.strip()
    db.session.commit()
    return customer
