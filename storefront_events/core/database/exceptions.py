"""Exceptions raised by repositories instead of raw SQLAlchemy errors."""

from __future__ import annotations

from typing import Any


class RepositoryError(Exception):
    """Base class for repository failures; ``details`` is safe to log."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})


class NotFoundError(RepositoryError):
    """No visible row matched the lookup.

    A row owned by another tenant is invisible, so it produces the same error
    as a row that does not exist.

    Example:
        try:
            subscription = await repo.get_or_raise(session, subscription_id)
        except NotFoundError as e:
            logger.info("Lookup failed", extra=e.details)
    """

    def __init__(self, model_name: str, identifier: dict[str, Any]) -> None:
        self.model_name = model_name
        self.identifier = identifier
        lookup = " ".join(f"{key}={value}" for key, value in identifier.items())
        super().__init__(f"{model_name} not found ({lookup})", {"model": model_name, **identifier})


__all__ = ["NotFoundError", "RepositoryError"]
