"""Tests for delivery outcome classification and retry scheduling."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from storefront_events.features.webhooks.policy import (
    AttemptOutcome,
    calculate_backoff,
    classify_status,
    decide_next,
)
from storefront_events.features.webhooks.schemas import DeliveryStatus

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    ("status_code", "expected"),
    [
        (200, AttemptOutcome.DELIVERED),
        (202, AttemptOutcome.DELIVERED),
        (299, AttemptOutcome.DELIVERED),
        (301, AttemptOutcome.PERMANENT),
        (400, AttemptOutcome.PERMANENT),
        (404, AttemptOutcome.PERMANENT),
        (410, AttemptOutcome.PERMANENT),
        (429, AttemptOutcome.TRANSIENT),
        (500, AttemptOutcome.TRANSIENT),
        (503, AttemptOutcome.TRANSIENT),
        (None, AttemptOutcome.TRANSIENT),
    ],
)
def test_classify_status(status_code: int | None, expected: AttemptOutcome) -> None:
    assert classify_status(status_code) is expected


def test_backoff_schedule() -> None:
    assert [calculate_backoff(n) for n in (1, 2, 3)] == [5.0, 25.0, 125.0]


def test_backoff_is_capped() -> None:
    assert calculate_backoff(10, max_delay=600.0) == 600.0


def _decide(outcome: AttemptOutcome, attempts_made: int, max_attempts: int = 3):
    return decide_next(
        outcome,
        attempts_made,
        max_attempts,
        NOW,
        base_delay=5.0,
        multiplier=5.0,
        max_delay=3600.0,
    )


class TestDecideNext:
    def test_delivered_is_terminal(self) -> None:
        decision = _decide(AttemptOutcome.DELIVERED, 1)
        assert decision.status is DeliveryStatus.DELIVERED
        assert decision.next_retry_at is None

    def test_permanent_fails_on_first_attempt(self) -> None:
        decision = _decide(AttemptOutcome.PERMANENT, 1)
        assert decision.status is DeliveryStatus.FAILED
        assert decision.next_retry_at is None

    @pytest.mark.parametrize(("attempts_made", "delay"), [(1, 5), (2, 25), (3, 125)])
    def test_transient_schedules_retry(self, attempts_made: int, delay: int) -> None:
        decision = _decide(AttemptOutcome.TRANSIENT, attempts_made, max_attempts=4)
        assert decision.status is DeliveryStatus.PENDING
        assert decision.next_retry_at == NOW + timedelta(seconds=delay)

    def test_transient_fails_when_budget_spent(self) -> None:
        decision = _decide(AttemptOutcome.TRANSIENT, 3, max_attempts=3)
        assert decision.status is DeliveryStatus.FAILED
        assert decision.next_retry_at is None
