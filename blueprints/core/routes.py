from __future__ import annotations
import json, logging
from datetime import datetime
from uuid import uuid4

from flask import g, jsonify, request, session
from flask_wtf.csrf import CSRFError, generate_csrf
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from werkzeug.wrappers.response import Response

from extensions import db
from .http import error, pydantic_errors_safe

from . import bp
from . import api_bp

VISITOR_COOKIE = "visitor_id"
VISITOR_MAX_AGE = 60 * 60 * 24 * 180  # 180 дней
# поля из extra={...}, которые попадают в JSON-строку лога
LOG_FIELDS = ("event", "path", "method", "status", "duration_ms", "visitor_id", "customer_id")

class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.utcnow().isoformat(timespec="milliseconds") + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in LOG_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)

def _has_json_handler(lg: logging.Logger) -> bool:
    return any(
        isinstance(h, logging.StreamHandler)
        and isinstance(getattr(h, "formatter", None), JSONFormatter)
        for h in lg.handlers
    )

def _setup_structured_logging(app):
    # app.logger + корневой логгер (на нём пишут сервисы через getLogger(__name__))
    for lg in (app.logger, logging.getLogger()):
        if not _has_json_handler(lg):
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            lg.addHandler(handler)
        lg.setLevel(logging.INFO)
    app.logger.propagate = False

@api_bp.get("/csrf")
def get_csrf():
    token = generate_csrf()
    resp = jsonify({"csrf": token})
    resp.set_cookie("csrf_token", token, samesite="Lax")
    return resp

@bp.before_app_request
def _ensure_visitor_and_start_timer():
    g._req_start = datetime.utcnow()
    vid = request.cookies.get(VISITOR_COOKIE)
    if not vid:
        vid = uuid4().hex
        g._set_visitor_cookie = vid
    g.visitor_id = vid

@bp.after_app_request
def _maybe_set_cookie_and_log(response: Response):
    if getattr(g, "_set_visitor_cookie", None):
        response.set_cookie(
            VISITOR_COOKIE,
            g._set_visitor_cookie,
            max_age=VISITOR_MAX_AGE,
            httponly=False,
            secure=request.is_secure,
            samesite="Lax",
            path="/",
        )
    start = getattr(g, "_req_start", None)
    duration_ms = int((datetime.utcnow() - start).total_seconds() * 1000) if start else None
    extra = {
        "event":"http_request",
        "path":request.path,
        "method":request.method,
        "status":response.status_code,
        "duration_ms":duration_ms,
        "visitor_id":getattr(g, "visitor_id", None),
    }
    if session.get("customer_id"):
        extra["customer_id"] = session["customer_id"]
    level = logging.ERROR if response.status_code >= 500 else logging.INFO
    logging.getLogger("storefront.http").log(level, "request handled", extra=extra)
    return response

# ---------- единый JSON для ошибок ----------
@bp.app_errorhandler(ValidationError)
def _validation_error(ve: ValidationError):
    return error("validation_error", 422, detail=pydantic_errors_safe(ve))

@bp.app_errorhandler(IntegrityError)
def _integrity_error(ex: IntegrityError):
    db.session.rollback()
    return error("Unique constraint violation", 409, code="UNIQUE_CONSTRAINT")

@bp.app_errorhandler(CSRFError)
def _csrf_error(e: CSRFError):
    return error("csrf_failed", 400, detail=e.description)

@bp.app_errorhandler(400)
def _bad_request(e):
    return error("bad_request", 400)

@bp.app_errorhandler(404)
def _not_found(e):
    return error("not_found", 404)

@bp.app_errorhandler(405)
def _method_not_allowed(e):
    return error("method_not_allowed", 405)

@bp.record_once
def _on_register(state):
    _setup_structured_logging(state.app)

@bp.get("/health")
def health():
    return jsonify({
        "status":"ok",
        "ts": datetime.utcnow().isoformat(timespec="seconds")+"Z",
        "visitor_id": getattr(g, "visitor_id", None),
    })
