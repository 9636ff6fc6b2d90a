"""Modular Pydantic Settings v2 configuration.

Each domain has its own frozen settings model with an environment prefix:

- ``DB_``: database connection and pool
- ``LOG_``: logging
- ``TENANCY_``: tenant isolation
- ``WEBHOOK_``: webhook delivery
- ``TASK_``: background task broker

Import settings via the cached loaders:
    from storefront_events.core.settings import get_webhook_settings

    settings = get_webhook_settings()
    print(settings.max_attempts)

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .database import DatabaseSettings
from .loader import (
    clear_all_caches,
    get_db_settings,
    get_logging_settings,
    get_task_settings,
    get_tenancy_settings,
    get_webhook_settings,
)
from .logs import LoggingSettings
from .tasks import TaskSettings
from .tenancy import TenancySettings
from .webhooks import WebhookSettings

__all__ = [
    "DatabaseSettings",
    "LoggingSettings",
    "TaskSettings",
    "TenancySettings",
    "WebhookSettings",
    "clear_all_caches",
    "get_db_settings",
    "get_logging_settings",
    "get_task_settings",
    "get_tenancy_settings",
    "get_webhook_settings",
]
