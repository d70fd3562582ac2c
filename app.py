from __future__ import annotations
import logging
import os
from flask import Flask
from sqlalchemy import inspect

from config import config_map
from extensions import db, csrf, migrate, login_manager

log = logging.getLogger(__name__)

def _ensure_default_users(app: Flask) -> None:
    """Учётки персонала из DEFAULT_USERS (только dev): admin и касса."""
    if not app.config.get("SEED_TEST_DATA"):
        return
    with app.app_context():
        # до `flask db upgrade` таблицы ещё нет
        if not inspect(db.engine).has_table("users"):
            return

        from models import User  # models тянут extensions, импорт после init_app
        missing = [u for u in app.config.get("DEFAULT_USERS", [])
                   if not User.query.filter_by(username=u["username"]).first()]
        for u in missing:
            user = User(username=u["username"], role=u["role"], is_active_flag=True)
            user.set_password(u["password"])
            db.session.add(user)
        if missing:
            db.session.commit()
            log.info("default staff accounts created: %s", ", ".join(u["username"] for u in missing))

def register_blueprints(app: Flask) -> None:
    from blueprints.core import bp as core_bp, api_bp as core_api_bp
    from blueprints.auth.routes import api_bp as auth_api_bp
    from blueprints.catalog.routes import api_bp as catalog_api_bp
    from blueprints.timeslots.routes import api_bp as timeslots_api_bp
    from blueprints.cart.routes import api_bp as cart_api_bp
    from blueprints.orders.routes import api_bp as orders_api_bp
    from blueprints.admin.routes import api_bp as admin_api_bp

    # '/health' в корне, весь JSON API под /api/v1
    app.register_blueprint(core_bp)
    for api in (core_api_bp, auth_api_bp, catalog_api_bp, timeslots_api_bp,
                cart_api_bp, orders_api_bp, admin_api_bp):
        app.register_blueprint(api, url_prefix="/api/v1")

def create_app(config_name: str | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    cfg_name = config_name or os.getenv("FLASK_CONFIG", "default")
    app.config.from_object(config_map[cfg_name])
    # pytest выставляет PYTEST_CURRENT_TEST: у каждого приложения своя БД в памяти
    if os.environ.get("PYTEST_CURRENT_TEST"):
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {"connect_args": {"check_same_thread": False}})

    os.makedirs(app.instance_path, exist_ok=True)
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    register_blueprints(app)
    _ensure_default_users(app)
    return app
