"""Context management for structured logging.

Log context lives in a ``ContextVar`` so each asyncio task carries its own
fields. ``ContextInjectingFilter`` copies those fields, plus the active
tenant, onto every record so formatters can emit them without the call sites
passing anything.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

from storefront_events.core.tenancy.context import get_tenant_context, is_system_scope

if TYPE_CHECKING:
    from collections.abc import Iterator

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Add fields to the logging context of the current task.

    Example:
        set_log_context(worker_id="worker-1", batch=12)
        logger.info("Processing batch")  # includes worker_id and batch
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Get a copy of the current logging context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Clear all logging context for the current task."""
    _log_context.set({})


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Temporarily add fields to the logging context.

    Example:
        with log_context(delivery_id=str(delivery.id)):
            await send(delivery)
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    token = _log_context.set(current)
    try:
        yield
    finally:
        _log_context.reset(token)


class ContextInjectingFilter(logging.Filter):
    """Logging filter that injects log context and tenant into each LogRecord.

    Attach it to the root logger through dictConfig:

        "filters": {"context": {"()": "storefront_events.infra.logging.context.ContextInjectingFilter"}}
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)

        if not hasattr(record, "tenant_id"):
            tenant = get_tenant_context()
            if tenant is not None:
                record.tenant_id = tenant.tenant_id
            elif is_system_scope():
                record.tenant_id = "*system*"

        return True
