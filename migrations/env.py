import logging
import os
import sys
from logging.config import fileConfig

from alembic import context
from flask import current_app, has_app_context

# корень репозитория в sys.path: alembic запускают и без `flask db`
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)
log = logging.getLogger("alembic.env")

from extensions import db  # noqa: E402

if not has_app_context():
    from app import create_app  # noqa: E402
    create_app().app_context().push()

DB_URL = current_app.config["SQLALCHEMY_DATABASE_URI"]
if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", DB_URL.replace("%", "%%"))

target_metadata = db.metadata


def _skip_empty_revision(ctx, revision, directives):
    # `flask db migrate` без изменений в моделях не должен плодить пустые ревизии
    if getattr(config.cmd_opts, "autogenerate", False):
        script = directives[0]
        if script.upgrade_ops.is_empty():
            directives[:] = []
            log.info("no schema changes detected")


def _configure(**kw):
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,        # Numeric(10, 2) для цен должен сравниваться
        render_as_batch=True,     # ALTER на SQLite только через batch
        **kw,
    )


def run_migrations_offline():
    """SQL-скрипт без подключения к БД."""
    _configure(
        url=config.get_main_option("sqlalchemy.url") or DB_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    with db.engine.connect() as connection:
        _configure(connection=connection, process_revision_directives=_skip_empty_revision)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
