"""Delivery outcome classification and retry scheduling."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from storefront_events.features.webhooks.schemas import DeliveryStatus

TOO_MANY_REQUESTS = 429


class AttemptOutcome(str, Enum):
    """How a single HTTP attempt ended."""

    DELIVERED = "delivered"
    TRANSIENT = "transient"
    PERMANENT = "permanent"


def classify_status(status_code: int | None) -> AttemptOutcome:
    """Classify an HTTP response status.

    ``None`` (no response: timeout or transport error) is transient. 2xx is
    delivered. 429 and 5xx are transient. Everything else is permanent.
    """
    if status_code is None:
        return AttemptOutcome.TRANSIENT
    if 200 <= status_code < 300:
        return AttemptOutcome.DELIVERED
    if status_code == TOO_MANY_REQUESTS or status_code >= 500:
        return AttemptOutcome.TRANSIENT
    return AttemptOutcome.PERMANENT


def calculate_backoff(
    attempt: int,
    base_delay: float = 5.0,
    multiplier: float = 5.0,
    max_delay: float = 3600.0,
) -> float:
    """Delay in seconds after the ``attempt``-th failed attempt (1-based).

    With the defaults: 5s, 25s, 125s, ...
    """
    if attempt < 1:
        attempt = 1
    return min(base_delay * (multiplier ** (attempt - 1)), max_delay)


@dataclass(slots=True, frozen=True)
class RetryDecision:
    status: DeliveryStatus
    next_retry_at: datetime | None


def decide_next(
    outcome: AttemptOutcome,
    attempts_made: int,
    max_attempts: int,
    now: datetime,
    *,
    base_delay: float,
    multiplier: float,
    max_delay: float,
) -> RetryDecision:
    """State a delivery moves to after an attempt.

    Args:
        outcome: Classification of the attempt just made
        attempts_made: Attempt count including the one just made
        max_attempts: Total attempt budget
        now: Reference time for scheduling the retry
    """
    if outcome is AttemptOutcome.DELIVERED:
        return RetryDecision(DeliveryStatus.DELIVERED, None)
    if outcome is AttemptOutcome.PERMANENT or attempts_made >= max_attempts:
        return RetryDecision(DeliveryStatus.FAILED, None)

    delay = calculate_backoff(attempts_made, base_delay, multiplier, max_delay)
    return RetryDecision(DeliveryStatus.PENDING, now + timedelta(seconds=delay))


__all__ = [
    "AttemptOutcome",
    "RetryDecision",
    "calculate_backoff",
    "classify_status",
    "decide_next",
]
