"""SQLAlchemy models for the webhooks feature."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront_events.core.database import (
    Base,
    StringArray,
    TenantMixin,
    TimestampMixin,
    UTCDateTime,
    UUIDPKMixin,
    register_tenant_events,
)
from storefront_events.features.webhooks.schemas import DeliveryStatus

SECRET_MASK_LENGTH = 8


def mask_secret(secret: str) -> str:
    """Masked form shown on every read after creation."""
    return f"{secret[:SECRET_MASK_LENGTH]}..."


class WebhookSubscription(Base, UUIDPKMixin, TimestampMixin, TenantMixin):
    """A tenant's registered endpoint for a set of event types.

    Subscriptions are deactivated rather than deleted in normal operation so
    their delivery history survives.
    """

    __tablename__ = "webhook_subscriptions"

    url: Mapped[str] = mapped_column(
        String(2048), nullable=False, comment="Target URL for webhook delivery"
    )
    description: Mapped[str | None] = mapped_column(
        Text(), nullable=True, comment="Subscription description"
    )
    event_types: Mapped[list[str]] = mapped_column(
        StringArray(),
        nullable=False,
        default=list,
        comment="Event types this subscription listens to",
    )
    secret: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="HMAC secret for signing payloads"
    )
    api_version: Mapped[str] = mapped_column(
        String(20), nullable=False, default="v1", comment="Payload API version"
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean(), default=True, nullable=False, comment="Whether subscription receives events"
    )
    deactivated_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True, comment="When the subscription was deactivated"
    )

    deliveries: Mapped[list[WebhookDelivery]] = relationship(
        "WebhookDelivery",
        back_populates="subscription",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="select",
    )

    @property
    def masked_secret(self) -> str:
        return mask_secret(self.secret)

    def listens_to(self, event_type: str) -> bool:
        return event_type in (self.event_types or [])

    def __repr__(self) -> str:
        return f"WebhookSubscription(id={self.id!s}, tenant_id={self.tenant_id!r}, url={self.url!r})"


class WebhookDelivery(Base, UUIDPKMixin, TimestampMixin, TenantMixin):
    """One event owed to one subscription, plus its delivery state.

    Rows are created ``pending`` by the recorder and moved to ``delivered`` or
    ``failed`` by the worker. ``lease_token``/``leased_until`` mark a row
    claimed by a worker; an expired lease makes it claimable again.
    """

    __tablename__ = "webhook_deliveries"
    __table_args__ = (
        UniqueConstraint(
            "subscription_id", "event_id", name="uq_webhook_deliveries_subscription_event"
        ),
        Index("ix_webhook_deliveries_status_next_retry_at", "status", "next_retry_at"),
    )

    subscription_id: Mapped[UUID] = mapped_column(
        ForeignKey("webhook_subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Subscription the event is delivered to",
    )
    event_id: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True, comment="Unique identifier for the event"
    )
    event_type: Mapped[str] = mapped_column(
        String(100), nullable=False, index=True, comment="Type of event being delivered"
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSONB().with_variant(JSON(), "sqlite"), nullable=False, comment="Event payload data"
    )
    occurred_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, comment="When the event was recorded"
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DeliveryStatus.PENDING.value,
        comment="Delivery status: pending, delivered, failed",
    )
    attempt_count: Mapped[int] = mapped_column(
        Integer(), default=0, nullable=False, comment="Number of delivery attempts made"
    )
    max_attempts: Mapped[int] = mapped_column(
        Integer(), default=3, nullable=False, comment="Maximum attempts allowed"
    )
    next_retry_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True, comment="Earliest time of the next attempt"
    )
    last_attempt_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True, comment="When the last attempt finished"
    )
    delivered_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True, comment="When a 2xx response was received"
    )
    response_status_code: Mapped[int | None] = mapped_column(
        Integer(), nullable=True, comment="HTTP response status code"
    )
    response_body: Mapped[str | None] = mapped_column(
        Text(), nullable=True, comment="HTTP response body (truncated)"
    )
    response_time_ms: Mapped[int | None] = mapped_column(
        Integer(), nullable=True, comment="Response time in milliseconds"
    )
    error_message: Mapped[str | None] = mapped_column(
        Text(), nullable=True, comment="Error message if delivery failed"
    )
    lease_token: Mapped[str | None] = mapped_column(
        String(64), nullable=True, comment="Token of the worker currently holding the row"
    )
    leased_until: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True, comment="Lease expiry of the current claim"
    )

    subscription: Mapped[WebhookSubscription] = relationship(
        "WebhookSubscription", back_populates="deliveries", lazy="select"
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in (DeliveryStatus.DELIVERED.value, DeliveryStatus.FAILED.value)

    def __repr__(self) -> str:
        return (
            f"WebhookDelivery(id={self.id!s}, event_id={self.event_id!r}, "
            f"status={self.status!r}, attempts={self.attempt_count})"
        )


register_tenant_events(Base)


__all__ = ["WebhookDelivery", "WebhookSubscription", "mask_secret"]
