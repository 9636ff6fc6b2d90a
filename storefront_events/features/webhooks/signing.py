"""Webhook payload serialization and HMAC signing.

The body is serialized once, deterministically (sorted keys, compact
separators, UTF-8), and the signature is computed over those exact bytes.
Receivers verify by recomputing the HMAC over the raw request body:

    expected = "sha256=" + hmac_sha256(secret, raw_body).hexdigest()
"""

from __future__ import annotations

import hashlib
import hmac
import json
from datetime import UTC, datetime
from typing import Any

SIGNATURE_PREFIX = "sha256="

HEADER_SIGNATURE = "X-Webhook-Signature"
HEADER_EVENT = "X-Webhook-Event"
HEADER_EVENT_ID = "X-Webhook-Event-ID"
HEADER_DELIVERY_ID = "X-Webhook-Delivery-ID"


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_webhook_body(
    event_id: str,
    event_type: str,
    data: dict[str, Any],
    timestamp: datetime,
) -> bytes:
    """Serialize the wire body ``{event_id, event_type, data, timestamp}``.

    The same inputs always produce the same bytes, so a retried delivery
    carries an identical body and signature.
    """
    document = {
        "data": data,
        "event_id": event_id,
        "event_type": event_type,
        "timestamp": format_timestamp(timestamp),
    }
    return json.dumps(
        document,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    ).encode("utf-8")


def compute_signature(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of ``body`` keyed with ``secret``."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def sign_payload(body: bytes, secret: str) -> str:
    """Signature header value: ``sha256=<hex>``."""
    return f"{SIGNATURE_PREFIX}{compute_signature(body, secret)}"


def verify_signature(body: bytes, signature: str | None, secret: str) -> bool:
    """Check a received signature header against the raw body.

    Uses a constant-time comparison.
    """
    if not signature or not signature.startswith(SIGNATURE_PREFIX):
        return False
    return hmac.compare_digest(signature, sign_payload(body, secret))


def build_headers(
    *,
    body: bytes,
    secret: str,
    event_type: str,
    event_id: str,
    user_agent: str,
    delivery_id: str | None = None,
) -> dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "User-Agent": user_agent,
        HEADER_SIGNATURE: sign_payload(body, secret),
        HEADER_EVENT: event_type,
        HEADER_EVENT_ID: event_id,
    }
    if delivery_id is not None:
        headers[HEADER_DELIVERY_ID] = delivery_id
    return headers


__all__ = [
    "HEADER_DELIVERY_ID",
    "HEADER_EVENT",
    "HEADER_EVENT_ID",
    "HEADER_SIGNATURE",
    "SIGNATURE_PREFIX",
    "build_headers",
    "build_webhook_body",
    "compute_signature",
    "format_timestamp",
    "sign_payload",
    "verify_signature",
]
