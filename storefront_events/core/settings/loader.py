"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Usage:
    from storefront_events.core.settings.loader import get_webhook_settings

    settings = get_webhook_settings()  # First call: loads and validates
    settings = get_webhook_settings()  # Subsequent calls: returns cached instance

Testing:
    In tests, clear the cache to force reload:
    clear_all_caches()
"""

from __future__ import annotations

from functools import lru_cache

from .database import DatabaseSettings
from .logs import LoggingSettings
from .tasks import TaskSettings
from .tenancy import TenancySettings
from .webhooks import WebhookSettings


@lru_cache(maxsize=1)
def get_db_settings() -> DatabaseSettings:
    """Get cached database settings.

    Returns:
        Validated and frozen DatabaseSettings instance.
    """
    return DatabaseSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_tenancy_settings() -> TenancySettings:
    """Get cached tenant isolation settings.

    Returns:
        Validated and frozen TenancySettings instance.
    """
    return TenancySettings()


@lru_cache(maxsize=1)
def get_task_settings() -> TaskSettings:
    """Get cached task broker settings."""
    return TaskSettings()


@lru_cache(maxsize=1)
def get_webhook_settings() -> WebhookSettings:
    """Get cached webhook settings.

    Returns:
        Validated and frozen WebhookSettings instance.
    """
    return WebhookSettings()


def clear_all_caches() -> None:
    """Clear all settings caches.

    Useful for testing or when you need to force reload settings.
    In production, prefer process restarts over cache clearing.
    """
    get_db_settings.cache_clear()
    get_logging_settings.cache_clear()
    get_tenancy_settings.cache_clear()
    get_task_settings.cache_clear()
    get_webhook_settings.cache_clear()


__all__ = [
    "clear_all_caches",
    "get_db_settings",
    "get_logging_settings",
    "get_task_settings",
    "get_tenancy_settings",
    "get_webhook_settings",
]
