"""CLI utilities for running async operations and formatting output."""

from storefront_events.cli.utils.async_runner import coro
from storefront_events.cli.utils.formatters import (
    error,
    header,
    info,
    key_value,
    section,
    success,
    warning,
)

__all__ = [
    "coro",
    "error",
    "header",
    "info",
    "key_value",
    "section",
    "success",
    "warning",
]
