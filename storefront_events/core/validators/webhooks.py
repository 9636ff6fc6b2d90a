"""Webhook validators.

Validation for subscription URLs and event type lists. Functions raise
``ValueError`` so they can be used directly inside pydantic validators.
"""

from __future__ import annotations

import ipaddress
from urllib.parse import urlparse

from storefront_events.core.validators.common import optional_validator

ALLOWED_URL_SCHEMES: frozenset[str] = frozenset({"http", "https"})


def validate_webhook_url(url: str, *, allow_private: bool = False) -> str:
    """Validate a subscription target URL.

    Literal private, loopback, reserved and link-local IP addresses are
    rejected unless ``allow_private`` is set. Host names are not resolved.

    Raises:
        ValueError: If the URL is unusable or points at an internal address
    """
    url = url.strip()
    parsed = urlparse(url)

    if parsed.scheme not in ALLOWED_URL_SCHEMES:
        raise ValueError("Webhook URL must use http or https")

    hostname = parsed.hostname
    if not hostname:
        raise ValueError("Invalid URL: missing hostname")

    if allow_private:
        return url

    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        # Hostname is a domain name, not an IP
        return url

    if ip.is_loopback:
        raise ValueError(f"Webhook URL cannot point to loopback address: {hostname}")
    if ip.is_link_local:
        raise ValueError(f"Webhook URL cannot point to link-local address: {hostname}")
    if ip.is_private:
        raise ValueError(f"Webhook URL cannot point to private IP address: {hostname}")
    if ip.is_reserved:
        raise ValueError(f"Webhook URL cannot point to reserved IP address: {hostname}")
    return url


def validate_event_types(values: list[str]) -> list[str]:
    """Strip, de-duplicate and require at least one non-empty event type.

    Order of first appearance is preserved.

    Raises:
        ValueError: If the list is empty or contains blank entries
    """
    if not values:
        raise ValueError("At least one event type is required")
    if not all(event_type.strip() for event_type in values):
        raise ValueError("Event types cannot be empty strings")
    return list(dict.fromkeys(event_type.strip() for event_type in values))


# Optional version for Update schemas
validate_event_types_optional = optional_validator(validate_event_types)


__all__ = [
    "ALLOWED_URL_SCHEMES",
    "validate_event_types",
    "validate_event_types_optional",
    "validate_webhook_url",
]
