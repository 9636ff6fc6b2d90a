"""Pydantic schemas for the webhooks feature."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from storefront_events.core.validators import (
    validate_event_types,
    validate_event_types_optional,
)

SECRET_WARNING = "Save this secret securely. It will not be shown again."


class DeliveryStatus(str, Enum):
    """Webhook delivery status enumeration."""

    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


class SubscriptionCreate(BaseModel):
    """Payload used when creating a subscription."""

    url: str = Field(..., min_length=1, max_length=2048, description="Target URL for webhook delivery")
    events: list[str] = Field(..., min_length=1, description="Event types to subscribe to")
    description: str | None = Field(None, max_length=1000, description="Subscription description")
    api_version: str = Field(default="v1", max_length=20, description="Payload API version")

    @field_validator("events")
    @classmethod
    def check_events(cls, v: list[str]) -> list[str]:
        """Strip and de-duplicate event types."""
        return validate_event_types(v)


class SubscriptionUpdate(BaseModel):
    """Payload used when updating a subscription. The secret is never updatable here."""

    url: str | None = Field(None, min_length=1, max_length=2048)
    events: list[str] | None = Field(None, min_length=1)
    description: str | None = Field(None, max_length=1000)
    api_version: str | None = Field(None, max_length=20)
    is_active: bool | None = None

    @field_validator("events")
    @classmethod
    def check_events(cls, v: list[str] | None) -> list[str] | None:
        return validate_event_types_optional(v)


class SubscriptionRead(BaseModel):
    """Representation of a subscription on every read. The secret is masked."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    url: str
    description: str | None
    events: list[str] = Field(validation_alias="event_types")
    secret: str = Field(validation_alias="masked_secret", description="First 8 characters of the secret")
    api_version: str
    is_active: bool
    deactivated_at: datetime | None
    created_at: datetime
    updated_at: datetime


class SubscriptionCreated(SubscriptionRead):
    """Returned exactly once, at creation or rotation, with the full secret."""

    secret: str = Field(description="Full HMAC signing secret")
    warning: str = SECRET_WARNING


class DeliveryRead(BaseModel):
    """Representation of a webhook delivery."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: str
    subscription_id: UUID
    event_id: str
    event_type: str
    payload: dict[str, Any]
    occurred_at: datetime
    status: DeliveryStatus
    attempt_count: int
    max_attempts: int
    next_retry_at: datetime | None
    last_attempt_at: datetime | None
    delivered_at: datetime | None
    response_status_code: int | None
    response_body: str | None
    response_time_ms: int | None
    error_message: str | None
    created_at: datetime


@dataclass(slots=True, frozen=True)
class RecordResult:
    """Outcome of recording one event.

    Attributes:
        event_id: The given or generated event id
        matched: Active subscriptions listening to the event type
        created: Delivery rows inserted by this call
        duplicates: Matching subscriptions that already had this event
    """

    event_id: str
    matched: int
    created: int
    duplicates: int
    delivery_ids: list[UUID] = field(default_factory=list)


__all__ = [
    "SECRET_WARNING",
    "DeliveryRead",
    "DeliveryStatus",
    "RecordResult",
    "SubscriptionCreate",
    "SubscriptionCreated",
    "SubscriptionRead",
    "SubscriptionUpdate",
]
