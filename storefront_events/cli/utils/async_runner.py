"""Run async command bodies from synchronous click callbacks."""

import asyncio
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any


def coro[T](f: Callable[..., Awaitable[T]]) -> Callable[..., T]:
    """Decorator that makes an async function synchronous for Click.

    Every invocation gets a fresh event loop via ``asyncio.run`` and the
    database engine is disposed before the loop closes.

    Usage:
        @webhooks.command()
        @coro
        async def deactivate(tenant: str, subscription_id: str):
            ...
    """

    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        async def _run() -> T:
            from storefront_events.infra.database import close_database

            try:
                return await f(*args, **kwargs)
            finally:
                await close_database()

        return asyncio.run(_run())

    return wrapper
