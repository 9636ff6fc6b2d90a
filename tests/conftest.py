"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings that keep tests off external infrastructure
    - Database Fixtures: a temp-file SQLite database per test
    - Tenancy Fixtures: tenant-scoped helpers
    - Webhook Fixtures: subscriptions and an HTTP receiver backed by httpx.MockTransport

The database is a real file (not ``:memory:``) so independent sessions use
independent connections and really run concurrently.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Callable, Iterator
from typing import TYPE_CHECKING, Any

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront_events.core.settings import DatabaseSettings, WebhookSettings, clear_all_caches

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

    from storefront_events.features.webhooks.models import WebhookSubscription

# Ensure tests run without external infrastructure
os.environ.setdefault("TASK_BROKER_URL", "")
os.environ.setdefault("LOG_CONSOLE_ENABLED", "false")
os.environ.setdefault("WEBHOOK_ALLOW_PRIVATE_URLS", "false")


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Iterator[None]:
    """Give every test freshly loaded settings."""
    clear_all_caches()
    yield
    clear_all_caches()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'storefront_events.db'}"


@pytest.fixture
async def db_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Async engine on a fresh SQLite file with all tables created.

    Built with ``build_engine`` so foreign keys (and ON DELETE CASCADE) are on.
    """
    from storefront_events.core.database import Base
    from storefront_events.features.webhooks import models  # noqa: F401
    from storefront_events.infra.database import build_engine

    engine = build_engine(DatabaseSettings(url=database_url))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Session for a single test, rolled back afterwards."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture
async def app_database(
    database_url: str,
    db_engine: AsyncEngine,
    monkeypatch: pytest.MonkeyPatch,
) -> AsyncGenerator[None]:
    """Point the process-wide engine (``get_async_session``) at the test database."""
    from storefront_events.infra.database import close_database

    monkeypatch.setenv("DB_URL", database_url)
    clear_all_caches()
    try:
        yield
    finally:
        await close_database()


# ============================================================================
# Webhook Fixtures
# ============================================================================


@pytest.fixture
def webhook_settings() -> WebhookSettings:
    """Default delivery settings, independent of the environment."""
    return WebhookSettings(
        max_attempts=3,
        retry_base_delay_seconds=5.0,
        retry_backoff_multiplier=5.0,
        max_concurrency=4,
        batch_size=50,
        lease_seconds=120.0,
    )


@pytest.fixture
def make_subscription(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Any]:
    """Factory that commits a subscription for a tenant.

    Example:
        sub = await make_subscription("biz_1", ["payment.succeeded"])
    """
    from storefront_events.core.tenancy import tenant_scope
    from storefront_events.features.webhooks.models import WebhookSubscription
    from storefront_events.features.webhooks.repository import get_subscription_repository

    async def _make(
        tenant_id: str,
        event_types: list[str],
        *,
        url: str = "https://hooks.example.com/receive",
        secret: str = "whsec_test_secret_value",
        is_active: bool = True,
    ) -> WebhookSubscription:
        async with session_factory() as session:
            with tenant_scope(tenant_id):
                subscription = await get_subscription_repository().create(
                    session,
                    WebhookSubscription(
                        url=url,
                        event_types=event_types,
                        secret=secret,
                        is_active=is_active,
                    ),
                )
            await session.commit()
            return subscription

    return _make


class Receiver:
    """Records webhook requests and answers with scripted responses."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response | Exception] = []
        self.default = httpx.Response(200, text="ok")

    def reply(self, *responses: httpx.Response | Exception) -> None:
        self.responses.extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return self.default

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def receiver() -> Receiver:
    return Receiver()
