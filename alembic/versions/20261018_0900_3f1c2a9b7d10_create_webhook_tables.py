"""create_webhook_tables

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op
from storefront_events.core.database.types import StringArray, UTCDateTime

# revision identifiers, used by Alembic.
revision: str = "3f1c2a9b7d10"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "webhook_subscriptions",
        sa.Column("id", sa.Uuid(), nullable=False, comment="UUID v4 primary key"),
        sa.Column("tenant_id", sa.String(length=255), nullable=False, comment="Tenant identifier for data isolation"),
        sa.Column("url", sa.String(length=2048), nullable=False, comment="Target URL for webhook delivery"),
        sa.Column("description", sa.Text(), nullable=True, comment="Subscription description"),
        sa.Column("event_types", StringArray(), nullable=False, comment="Event types this subscription listens to"),
        sa.Column("secret", sa.String(length=255), nullable=False, comment="HMAC secret for signing payloads"),
        sa.Column("api_version", sa.String(length=20), nullable=False, comment="Payload API version"),
        sa.Column("is_active", sa.Boolean(), nullable=False, comment="Whether subscription receives events"),
        sa.Column("deactivated_at", UTCDateTime(), nullable=True, comment="When the subscription was deactivated"),
        sa.Column("created_at", UTCDateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_webhook_subscriptions")),
    )
    op.create_index(
        op.f("ix_webhook_subscriptions_tenant_id"), "webhook_subscriptions", ["tenant_id"], unique=False
    )

    op.create_table(
        "webhook_deliveries",
        sa.Column("id", sa.Uuid(), nullable=False, comment="UUID v4 primary key"),
        sa.Column("tenant_id", sa.String(length=255), nullable=False, comment="Tenant identifier for data isolation"),
        sa.Column("subscription_id", sa.Uuid(), nullable=False, comment="Subscription the event is delivered to"),
        sa.Column("event_id", sa.String(length=255), nullable=False, comment="Unique identifier for the event"),
        sa.Column("event_type", sa.String(length=100), nullable=False, comment="Type of event being delivered"),
        sa.Column(
            "payload",
            postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite"),
            nullable=False,
            comment="Event payload data",
        ),
        sa.Column("occurred_at", UTCDateTime(), nullable=False, comment="When the event was recorded"),
        sa.Column("status", sa.String(length=20), nullable=False, comment="Delivery status: pending, delivered, failed"),
        sa.Column("attempt_count", sa.Integer(), nullable=False, comment="Number of delivery attempts made"),
        sa.Column("max_attempts", sa.Integer(), nullable=False, comment="Maximum attempts allowed"),
        sa.Column("next_retry_at", UTCDateTime(), nullable=True, comment="Earliest time of the next attempt"),
        sa.Column("last_attempt_at", UTCDateTime(), nullable=True, comment="When the last attempt finished"),
        sa.Column("delivered_at", UTCDateTime(), nullable=True, comment="When a 2xx response was received"),
        sa.Column("response_status_code", sa.Integer(), nullable=True, comment="HTTP response status code"),
        sa.Column("response_body", sa.Text(), nullable=True, comment="HTTP response body (truncated)"),
        sa.Column("response_time_ms", sa.Integer(), nullable=True, comment="Response time in milliseconds"),
        sa.Column("error_message", sa.Text(), nullable=True, comment="Error message if delivery failed"),
        sa.Column("lease_token", sa.String(length=64), nullable=True, comment="Token of the worker currently holding the row"),
        sa.Column("leased_until", UTCDateTime(), nullable=True, comment="Lease expiry of the current claim"),
        sa.Column("created_at", UTCDateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["subscription_id"],
            ["webhook_subscriptions.id"],
            name=op.f("fk_webhook_deliveries_subscription_id_webhook_subscriptions"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_webhook_deliveries")),
        sa.UniqueConstraint(
            "subscription_id", "event_id", name="uq_webhook_deliveries_subscription_event"
        ),
    )
    op.create_index(op.f("ix_webhook_deliveries_tenant_id"), "webhook_deliveries", ["tenant_id"], unique=False)
    op.create_index(
        op.f("ix_webhook_deliveries_subscription_id"), "webhook_deliveries", ["subscription_id"], unique=False
    )
    op.create_index(op.f("ix_webhook_deliveries_event_id"), "webhook_deliveries", ["event_id"], unique=False)
    op.create_index(op.f("ix_webhook_deliveries_event_type"), "webhook_deliveries", ["event_type"], unique=False)
    op.create_index(
        "ix_webhook_deliveries_status_next_retry_at",
        "webhook_deliveries",
        ["status", "next_retry_at"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("ix_webhook_deliveries_status_next_retry_at", table_name="webhook_deliveries")
    op.drop_index(op.f("ix_webhook_deliveries_event_type"), table_name="webhook_deliveries")
    op.drop_index(op.f("ix_webhook_deliveries_event_id"), table_name="webhook_deliveries")
    op.drop_index(op.f("ix_webhook_deliveries_subscription_id"), table_name="webhook_deliveries")
    op.drop_index(op.f("ix_webhook_deliveries_tenant_id"), table_name="webhook_deliveries")
    op.drop_table("webhook_deliveries")
    op.drop_index(op.f("ix_webhook_subscriptions_tenant_id"), table_name="webhook_subscriptions")
    op.drop_table("webhook_subscriptions")
