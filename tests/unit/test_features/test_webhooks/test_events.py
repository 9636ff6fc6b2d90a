"""Tests for the webhook event catalogue."""

from __future__ import annotations

import re

from storefront_events.features.webhooks.events import (
    ALL_EVENT_TYPES,
    PaymentEvents,
    generate_event_id,
    get_event_category,
    is_known_event_type,
)


def test_catalogue_has_no_duplicates() -> None:
    assert len(ALL_EVENT_TYPES) == len(set(ALL_EVENT_TYPES))


def test_known_event_type() -> None:
    assert is_known_event_type(PaymentEvents.SUCCEEDED)
    assert not is_known_event_type("payment.teleported")


def test_event_category() -> None:
    assert get_event_category("membership.canceled") == "membership"
    assert get_event_category("custom") == "custom"


def test_generated_event_ids() -> None:
    first = generate_event_id(1_700_000_000_000)
    second = generate_event_id(1_700_000_000_000)

    assert re.fullmatch(r"evt_1700000000000_[0-9a-f]{16}", first)
    assert first != second


def test_generated_event_id_uses_current_time() -> None:
    assert generate_event_id().startswith("evt_")
