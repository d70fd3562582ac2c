# blueprints/auth/routes.py
from __future__ import annotations
import logging
import time
from functools import wraps
from typing import Callable, Optional

from flask import Blueprint, request, jsonify, session, current_app, abort
from flask_login import login_user, logout_user, login_required, current_user
from pydantic import BaseModel, Field, ValidationError

from extensions import db, login_manager
from models import Customer, Role, User
from . import services as svc

log = logging.getLogger(__name__)

api_bp = Blueprint("auth_api", __name__)

CUSTOMER_SESSION_KEY = "customer_id"

# ---- безопасные значения по умолчанию
DEFAULT_RL_MAX = 5
DEFAULT_RL_WIN = 300  # 5 минут
_login_attempts: dict[str, list[float]] = {}  # ключ: ip|login -> [timestamps]

# ---------- rate limit ----------
def _rl_key(login: str) -> str:
    ip = request.headers.get("X-Forwarded-For", request.remote_addr or "0.0.0.0").split(",")[0].strip()
    return f"{ip}|{(login or '').lower()}"

def _rl_check_and_hit(login: str) -> bool:
    now = time.time()
    win = current_app.config.get("AUTH_RL_WINDOW", DEFAULT_RL_WIN)
    mx = current_app.config.get("AUTH_RL_MAX", DEFAULT_RL_MAX)
    key = _rl_key(login)
    bucket = _login_attempts.setdefault(key, [])
    # purge старых
    cutoff = now - win
    while bucket and bucket[0] < cutoff:
        bucket.pop(0)
    if len(bucket) >= mx:
        return False
    bucket.append(now)
    return True

def reset_rate_limits() -> None:
    _login_attempts.clear()

# ---------- декораторы ролей ----------
def admin_required(fn: Callable):
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        if getattr(current_user, "role", None) != Role.ADMIN.value:
            abort(403)
        return fn(*args, **kwargs)
    return wrapper

def staff_required(fn: Callable):
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        # экран выдачи доступен и кассиру, и админу
        if getattr(current_user, "role", None) not in (Role.STAFF.value, Role.ADMIN.value):
            abort(403)
        return fn(*args, **kwargs)
    return wrapper

def current_customer() -> Optional[Customer]:
    cid = session.get(CUSTOMER_SESSION_KEY)
    if not cid:
        return None
    return db.session.get(Customer, cid)

# ---------- обработчики 401/403 ----------
@login_manager.unauthorized_handler
def _unauth():
    return jsonify({"error": "unauthorized"}), 401

@api_bp.app_errorhandler(403)
def _forbidden(e):
    return jsonify({"error": "forbidden"}), 403

# ---------- схемы ----------
class LoginIn(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1)

class SendOtpIn(BaseModel):
    mobile: str

class VerifyOtpIn(BaseModel):
    mobile: str
    otp: str
    name: Optional[str] = Field(None, max_length=120)

# ---------- персонал ----------
@api_bp.post("/auth/login")
def api_login():
    payload = request.get_json(silent=True) or request.form or {}
    try:
        data = LoginIn.model_validate(payload)
    except ValidationError:
        return jsonify({"error": "missing_credentials"}), 400
    username = data.username.strip().lower()

    if not _rl_check_and_hit(username):
        return jsonify({"error": "too_many_attempts"}), 429

    user: Optional[User] = User.query.filter_by(username=username).first()
    if not user or not user.check_password(data.password):
        log.info("failed staff login for %s", username, extra={"event": "login_failed"})
        return jsonify({"error": "invalid_credentials"}), 401

    if not user.is_active:
        return jsonify({"error": "inactive"}), 403

    login_user(user, remember=True)
    return jsonify({"ok": True, "user": {"id": user.id, "username": user.username, "role": user.role}})

@api_bp.post("/auth/logout")
@login_required
def api_logout():
    logout_user()
    return jsonify({"ok": True})

@api_bp.get("/auth/me")
@login_required
def api_me():
    return jsonify({"id": current_user.id, "username": current_user.username, "role": current_user.role})

# ---------- покупатели (OTP) ----------
@api_bp.post("/auth/customer/send-otp")
def api_customer_send_otp():
    payload = request.get_json(silent=True) or {}
    try:
        data = SendOtpIn.model_validate(payload)
    except ValidationError:
        return jsonify({"error": "invalid_mobile"}), 400

    if not _rl_check_and_hit(f"otp:{data.mobile}"):
        return jsonify({"error": "too_many_attempts"}), 429
    try:
        issued = svc.send_otp(data.mobile.strip())
    except ValueError:
        return jsonify({"error": "invalid_mobile"}), 400

    body = {"ok": True, "message": "otp_sent"}
    # только для демо/разработки
    if current_app.config.get("OTP_ECHO"):
        body["demo_otp"] = issued.otp
    return jsonify(body)

@api_bp.post("/auth/customer/verify-otp")
def api_customer_verify_otp():
    payload = request.get_json(silent=True) or {}
    try:
        data = VerifyOtpIn.model_validate(payload)
    except ValidationError:
        return jsonify({"error": "missing_fields"}), 400

    mobile = data.mobile.strip()
    # перебор 6-значного кода: лимит попыток на номер
    if not _rl_check_and_hit(f"otp-verify:{mobile}"):
        log.warning("otp verify rate limit hit for %s", mobile, extra={"event": "otp_verify_throttled"})
        return jsonify({"error": "too_many_attempts"}), 429
    try:
        customer = svc.verify_otp(mobile, data.otp.strip(), data.name)
    except LookupError:
        return jsonify({"error": "customer_not_found"}), 404
    except ValueError as ve:
        return jsonify({"error": str(ve).lower()}), 400

    session[CUSTOMER_SESSION_KEY] = customer.id
    return jsonify({"ok": True, "customer": {"id": customer.id, "name": customer.name, "mobile": customer.mobile}})

@api_bp.post("/auth/customer/logout")
def api_customer_logout():
    session.pop(CUSTOMER_SESSION_KEY, None)
    return jsonify({"ok": True})
