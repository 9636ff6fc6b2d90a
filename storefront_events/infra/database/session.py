"""Async database engine and session management.

The engine is created on first use from ``DatabaseSettings`` so importing
this module never opens a connection. PostgreSQL uses the psycopg3 async
driver; SQLite uses aiosqlite.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from storefront_events.core.settings import get_db_settings

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from storefront_events.core.settings import DatabaseSettings

logger = logging.getLogger(__name__)


def build_engine(settings: DatabaseSettings) -> AsyncEngine:
    """Create an async engine for the configured URL."""
    kwargs: dict[str, Any] = {"echo": settings.echo}
    if not settings.is_sqlite:
        kwargs.update(
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_timeout=settings.pool_timeout,
            pool_pre_ping=settings.pool_pre_ping,
        )

    engine = create_async_engine(settings.url, **kwargs)

    if settings.is_sqlite:
        # SQLite only enforces ON DELETE CASCADE with foreign keys switched on.
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_sqlite_foreign_keys(dbapi_conn: Any, connection_record: Any) -> None:
            _ = connection_record
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    """Get the process-wide engine, creating it on first call."""
    return build_engine(get_db_settings())


@lru_cache(maxsize=1)
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the process-wide session factory."""
    return async_sessionmaker(
        get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get async database session.

    Yields:
        Database session that is automatically closed.

    Example:
        async with get_async_session() as session:
            result = await session.execute(select(WebhookSubscription))
    """
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_database(*, create_tables: bool = False) -> None:
    """Check connectivity and optionally create tables.

    ``create_tables`` is meant for SQLite development databases and tests;
    PostgreSQL deployments use Alembic migrations.

    Raises:
        Exception: Whatever the driver raises when the database is unreachable.
    """
    engine = get_engine()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(
            "Failed to connect to database",
            extra={"url": engine.url.render_as_string(hide_password=True), "error": str(e)},
        )
        raise

    if create_tables:
        from storefront_events.core.database import Base
        from storefront_events.features.webhooks import models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    logger.info(
        "Database connection established",
        extra={"url": engine.url.render_as_string(hide_password=True), "tables_created": create_tables},
    )


async def close_database() -> None:
    """Dispose the engine and forget the cached factories."""
    if get_engine.cache_info().currsize == 0:
        return
    await get_engine().dispose()
    get_session_factory.cache_clear()
    get_engine.cache_clear()
    logger.info("Database connection closed")
