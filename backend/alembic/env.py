from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlalchemy.engine import make_url

from tenantdesk.core.config import settings
from tenantdesk.db.base import Base
import tenantdesk.models  # noqa: F401  # register every table on Base.metadata

config = context.config

# Only the alembic CLI owns logging; the app's startup upgrade keeps structlog's setup
if config.config_file_name and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata


def get_url() -> str:
    """
    DATABASE_URL_SYNC when set; otherwise the async URL with a sync driver.
    """
    if settings.DATABASE_URL_SYNC:
        return settings.DATABASE_URL_SYNC
    url = make_url(settings.DATABASE_URL_ASYNC_CLEAN)
    backend = url.get_backend_name()
    driver = "psycopg" if backend == "postgresql" else None
    return url.set(drivername=f"{backend}+{driver}" if driver else backend).render_as_string(hide_password=False)


config.set_main_option("sqlalchemy.url", get_url().replace("%", "%%"))


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata, compare_type=True)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
