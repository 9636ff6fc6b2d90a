"""Logging infrastructure.

Provides structured logging with:
- JSONL format for log aggregation
- Automatic context injection (log context plus the active tenant)
- QueueHandler + QueueListener for non-blocking I/O
- Lazy evaluation for expensive debug messages
- OpenTelemetry trace correlation

Basic usage:
    import logging

    from storefront_events.infra.logging import get_lazy_logger, set_log_context

    logger = logging.getLogger(__name__)
    set_log_context(worker_id="w-1")
    logger.info("Claimed deliveries", extra={"count": 3})

    lazy_logger = get_lazy_logger(__name__)
    lazy_logger.debug(lambda: f"Payload: {render(payload)}")
"""

from __future__ import annotations

from storefront_events.infra.logging.config import (
    configure_logging,
    setup_logging,
    shutdown,
)
from storefront_events.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    log_context,
    set_log_context,
)
from storefront_events.infra.logging.formatters import JSONFormatter
from storefront_events.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
