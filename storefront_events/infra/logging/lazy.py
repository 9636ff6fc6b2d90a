"""Deferred message building for DEBUG logs.

Debug lines in the worker and repositories describe payloads, claimed ids and
query results. Passing a lambda instead of a string means none of that is
formatted unless the level is enabled.
"""

from __future__ import annotations

import logging
from typing import Any


class LazyLoggerAdapter(logging.LoggerAdapter):
    """Adapter that calls callable messages (and callable %-args) only when emitted.

    ``LoggerAdapter.debug``/``info``/``exception`` all funnel through ``log``,
    so overriding it covers every level.

    Example:
        lazy_logger = get_lazy_logger(__name__)
        lazy_logger.debug(lambda: f"claimed={[str(c.delivery_id) for c in claims]}")
    """

    def log(self, level: int, msg: Any, *args: Any, **kwargs: Any) -> None:
        if not self.isEnabledFor(level):
            return
        if callable(msg):
            msg = msg()
        args = tuple(arg() if callable(arg) else arg for arg in args)
        super().log(level, msg, *args, **kwargs)


def get_lazy_logger(name: str, **context: Any) -> LazyLoggerAdapter:
    """Return a lazy adapter over ``logging.getLogger(name)``.

    ``context`` is attached to every record the adapter emits.
    """
    return LazyLoggerAdapter(logging.getLogger(name), context)
