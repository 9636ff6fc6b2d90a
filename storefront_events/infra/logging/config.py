"""Root logger wiring.

The root logger gets a single ``QueueHandler``. The real handlers (console,
rotating JSONL file) sit behind a ``QueueListener`` thread, so the delivery
worker's event loop never blocks on log I/O. The tenant and log context are
captured by a filter on the ``QueueHandler``, i.e. on the task that logged,
before the record crosses to the listener thread.
"""

from __future__ import annotations

import atexit
import logging
import logging.config
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import SimpleQueue
from typing import TYPE_CHECKING, Any

from storefront_events.infra.logging.context import ContextInjectingFilter
from storefront_events.infra.logging.formatters import JSONFormatter

if TYPE_CHECKING:
    from storefront_events.core.settings.logs import LoggingSettings

logger = logging.getLogger(__name__)

TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(tenant_id)s] %(name)s: %(message)s"

_listener: QueueListener | None = None
_configured = False


class _TextFormatter(logging.Formatter):
    """Plain text for local development; records outside a tenant show ``-``."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "tenant_id"):
            # copy: the same record also reaches the JSON file handler
            record = logging.makeLogRecord({**record.__dict__, "tenant_id": "-"})
        return super().format(record)


def shutdown() -> None:
    """Stop the listener thread after it drains queued records."""
    global _listener

    if _listener is not None:
        _listener.stop()
        _listener = None


def _handlers(
    *,
    service_name: str,
    json_logs: bool,
    console_enabled: bool,
    file_path: Path | None,
    file_max_bytes: int,
    file_backup_count: int,
) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    json_formatter = JSONFormatter(static={"service": service_name})

    if console_enabled:
        console = logging.StreamHandler()
        console.setFormatter(json_formatter if json_logs else _TextFormatter(TEXT_FORMAT))
        handlers.append(console)

    if file_path is not None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(
            file_path, maxBytes=file_max_bytes, backupCount=file_backup_count, encoding="utf-8"
        )
        rotating.setFormatter(json_formatter)
        handlers.append(rotating)

    return handlers


def configure_logging(
    log_level: str = "INFO",
    file_path: str | Path | None = None,
    json_logs: bool = True,
    console_enabled: bool = True,
    include_context: bool = True,
    capture_warnings: bool = True,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    service_name: str = "storefront-events",
) -> None:
    """(Re)configure the root logger.

    Calling it again replaces the previous listener and handlers.

    Example:
        configure_logging(log_level="DEBUG", json_logs=False)
    """
    global _listener

    # Resets the root level and drops any handlers left by a previous call.
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "root": {"level": log_level.upper(), "handlers": []},
        }
    )
    logging.captureWarnings(capture_warnings)

    shutdown()
    queue: SimpleQueue[logging.LogRecord] = SimpleQueue()
    handlers = _handlers(
        service_name=service_name,
        json_logs=json_logs,
        console_enabled=console_enabled,
        file_path=Path(file_path) if file_path else None,
        file_max_bytes=file_max_bytes,
        file_backup_count=file_backup_count,
    )
    if handlers:
        _listener = QueueListener(queue, *handlers, respect_handler_level=True)
        _listener.start()
        atexit.register(shutdown)

    queue_handler = QueueHandler(queue)
    if include_context:
        queue_handler.addFilter(ContextInjectingFilter())
    logging.getLogger().addHandler(queue_handler)

    logger.debug("Logging configured", extra={"json_logs": json_logs, "level": log_level})


def setup_logging(log_settings: LoggingSettings | None = None, *, force: bool = False, **overrides: Any) -> None:
    """Configure logging from ``LoggingSettings`` once per process.

    Entry points (CLI, taskiq broker) call this unconditionally; only the
    first call, or one with ``force=True``, does anything.

    Args:
        log_settings: Settings to use instead of ``get_logging_settings()``
        force: Reconfigure even if already configured
        **overrides: Keyword arguments passed through to ``configure_logging``
    """
    global _configured

    if _configured and not force:
        return

    if log_settings is None:
        from storefront_events.core.settings import get_logging_settings

        log_settings = get_logging_settings()

    configure_logging(**{**log_settings.to_logging_kwargs(), **overrides})
    _configured = True


__all__ = ["configure_logging", "setup_logging", "shutdown"]
