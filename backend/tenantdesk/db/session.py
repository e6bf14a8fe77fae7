from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tenantdesk.core.config import settings


def build_engine(url: str, **overrides: Any) -> AsyncEngine:
    """
    Async engine for Postgres (asyncpg) or SQLite (aiosqlite).
    Pool tuning only applies to server databases; SQLite gets the defaults.
    """
    kwargs: dict[str, Any] = {"echo": settings.SQL_ECHO}
    if make_url(url).get_backend_name() != "sqlite":
        kwargs.update(
            pool_pre_ping=True,  # drop dead connections before handing them out
            pool_recycle=300,
        )
    kwargs.update(overrides)
    return create_async_engine(url, **kwargs)


def build_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # rows stay readable after commit; handlers serialize them after the audit write
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# asyncpg rejects sslmode/channel_binding, so use the cleaned URL
engine: AsyncEngine = build_engine(settings.DATABASE_URL_ASYNC_CLEAN)
AsyncSessionLocal = build_sessionmaker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    One AsyncSession per request. Work left uncommitted when the handler
    raises is rolled back before the session closes.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
