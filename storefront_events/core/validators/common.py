"""Common validator utilities."""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")


def optional_validator(
    validate_fn: Callable[[T], T],
) -> Callable[[T | None], T | None]:
    """Wrap a validator so ``None`` passes through unchanged.

    Lets Create schemas (required field) and Update schemas (optional field)
    share the same rule.

    Example:
        validate_event_types_optional = optional_validator(validate_event_types)
    """

    def wrapper(value: T | None) -> T | None:
        if value is None:
            return None
        return validate_fn(value)

    return wrapper


__all__ = ["optional_validator"]
