"""JSON Lines formatter for structured logs."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from opentelemetry import trace

# Attributes every LogRecord carries; anything else arrived through ``extra=``
# or a filter and is emitted as a top-level key.
_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message"}

# Emitted right after the core fields so tenant and correlation ids are easy
# to spot when reading raw lines.
_LEADING_KEYS = ("tenant_id", "trace_id", "span_id")


def _utc_timestamp(created: float) -> str:
    return datetime.fromtimestamp(created, tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, one record per line.

    Example output:
        {"timestamp": "2026-01-01T00:00:00.123Z", "level": "INFO",
         "logger": "storefront_events.features.webhooks.worker",
         "message": "Webhook delivered", "tenant_id": "biz_1",
         "service": "storefront-events", "delivery_id": "..."}
    """

    def __init__(self, static: dict[str, Any] | None = None) -> None:
        super().__init__()
        self.static = dict(static or {})

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extra = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            extra.setdefault("trace_id", format(span_context.trace_id, "032x"))
            extra.setdefault("span_id", format(span_context.span_id, "016x"))

        for key in _LEADING_KEYS:
            if key in extra:
                data[key] = extra.pop(key)
        data.update(self.static)
        for key, value in extra.items():
            data.setdefault(key, value)

        # Multi-line tracebacks would break the one-record-per-line contract.
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info).replace("\n", "\\n")
        if record.stack_info:
            data["stack_trace"] = record.stack_info.replace("\n", "\\n")

        return json.dumps(data, ensure_ascii=False, default=str)


__all__ = ["JSONFormatter"]
