"""Webhook event catalogue and event id generation.

Defines every event type a subscription can listen to. Event producers
(payments, memberships, licensing, onboarding, catalogue) record events with
these names through ``record_event``.
"""

from __future__ import annotations

import secrets
import time


class PaymentEvents:
    """Payment lifecycle events."""

    SUCCEEDED = "payment.succeeded"
    FAILED = "payment.failed"
    REFUNDED = "payment.refunded"


class MembershipEvents:
    """Membership (subscription to a product) lifecycle events."""

    CREATED = "membership.created"
    UPDATED = "membership.updated"
    CANCELED = "membership.canceled"
    EXPIRED = "membership.expired"


class LicenseEvents:
    """Software license key events."""

    CREATED = "license.created"
    ACTIVATED = "license.activated"
    DEACTIVATED = "license.deactivated"


class CompanyEvents:
    """Merchant (tenant) account events."""

    ONBOARDED = "company.onboarded"
    UPDATED = "company.updated"


class ProductEvents:
    """Product catalogue events."""

    CREATED = "product.created"
    UPDATED = "product.updated"
    DELETED = "product.deleted"


# All available event types that subscriptions can listen to
ALL_EVENT_TYPES = [
    # Payment events
    PaymentEvents.SUCCEEDED,
    PaymentEvents.FAILED,
    PaymentEvents.REFUNDED,
    # Membership events
    MembershipEvents.CREATED,
    MembershipEvents.UPDATED,
    MembershipEvents.CANCELED,
    MembershipEvents.EXPIRED,
    # License events
    LicenseEvents.CREATED,
    LicenseEvents.ACTIVATED,
    LicenseEvents.DEACTIVATED,
    # Company events
    CompanyEvents.ONBOARDED,
    CompanyEvents.UPDATED,
    # Product events
    ProductEvents.CREATED,
    ProductEvents.UPDATED,
    ProductEvents.DELETED,
]

_EVENT_TYPE_SET = frozenset(ALL_EVENT_TYPES)


def is_known_event_type(event_type: str) -> bool:
    return event_type in _EVENT_TYPE_SET


def get_event_category(event_type: str) -> str:
    """Return the category prefix of an event type.

    Examples:
        >>> get_event_category("payment.succeeded")
        'payment'
    """
    return event_type.split(".", 1)[0]


def generate_event_id(now_ms: int | None = None) -> str:
    """Generate a unique event id.

    The id is ``evt_<unix milliseconds>_<16 random hex chars>``: roughly
    time-ordered, and collision-free for all practical purposes.

    Examples:
        >>> generate_event_id(1700000000000)[:18]
        'evt_1700000000000_'
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"evt_{now_ms}_{secrets.token_hex(8)}"


__all__ = [
    "ALL_EVENT_TYPES",
    "CompanyEvents",
    "LicenseEvents",
    "MembershipEvents",
    "PaymentEvents",
    "ProductEvents",
    "generate_event_id",
    "get_event_category",
    "is_known_event_type",
]
