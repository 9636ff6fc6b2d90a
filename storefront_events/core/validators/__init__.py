"""Reusable validators for pydantic schemas and services.

Usage with Pydantic v2:
    from storefront_events.core.validators import validate_event_types_optional

    class SubscriptionUpdate(BaseModel):
        events: list[str] | None = None

        @field_validator("events")
        @classmethod
        def check_events(cls, v: list[str] | None) -> list[str] | None:
            return validate_event_types_optional(v)
"""

from __future__ import annotations

from storefront_events.core.validators.common import optional_validator
from storefront_events.core.validators.webhooks import (
    validate_event_types,
    validate_event_types_optional,
    validate_webhook_url,
)

__all__ = [
    "optional_validator",
    "validate_event_types",
    "validate_event_types_optional",
    "validate_webhook_url",
]
