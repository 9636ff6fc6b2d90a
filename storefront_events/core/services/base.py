"""Base service class for business logic."""

from __future__ import annotations

import logging

from storefront_events.infra.logging import get_lazy_logger


class BaseService:
    """Base class for service classes.

    Loggers:
        - self.logger: Standard logger for INFO/WARNING/ERROR (always evaluated)
        - self._lazy: Lazy logger for DEBUG (zero overhead when DEBUG disabled)

    Example:
        class SubscriptionService(BaseService):
            async def deactivate(self, subscription_id: UUID) -> None:
                self.logger.info("Deactivating", extra={"subscription_id": str(subscription_id)})
                self._lazy.debug(lambda: f"State: {expensive_dump()}")
    """

    def __init__(self) -> None:
        name = f"{self.__class__.__module__}.{self.__class__.__name__}"
        self.logger = logging.getLogger(name)
        self._lazy = get_lazy_logger(name)
