"""Event recording: fan an event out into pending deliveries.

Recording never performs network I/O. It writes one ``pending`` delivery row
per active subscription listening to the event type and returns; the
``DeliveryWorker`` does the sending.

Idempotency comes from the ``(subscription_id, event_id)`` unique constraint:
the insert is ``ON CONFLICT DO NOTHING``, so recording the same event twice,
even from concurrent transactions, leaves exactly one row per subscription.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from storefront_events.core.settings import get_webhook_settings
from storefront_events.core.tenancy import tenant_scope
from storefront_events.features.webhooks.events import generate_event_id, is_known_event_type
from storefront_events.features.webhooks.repository import (
    get_delivery_repository,
    get_subscription_repository,
)
from storefront_events.features.webhooks.schemas import DeliveryStatus, RecordResult
from storefront_events.infra.database import get_async_session
from storefront_events.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from storefront_events.core.settings import WebhookSettings
    from storefront_events.features.webhooks.repository import (
        DeliveryRepository,
        SubscriptionRepository,
    )

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

DELIVERY_CONFLICT_COLUMNS = ("subscription_id", "event_id")


class EventRecorder:
    """Creates delivery rows for an event, scoped to one tenant."""

    def __init__(
        self,
        subscriptions: SubscriptionRepository | None = None,
        deliveries: DeliveryRepository | None = None,
        settings: WebhookSettings | None = None,
    ) -> None:
        self.subscriptions = subscriptions or get_subscription_repository()
        self.deliveries = deliveries or get_delivery_repository()
        self.settings = settings or get_webhook_settings()

    async def record_event(
        self,
        session: AsyncSession,
        tenant_id: str,
        event_type: str,
        payload: dict[str, Any],
        event_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> RecordResult:
        """Record ``event_type`` for ``tenant_id``.

        Flushes but does not commit; the caller owns the transaction.

        Args:
            session: Database session
            tenant_id: Tenant the event belongs to
            event_type: Event type, e.g. ``payment.succeeded``
            payload: JSON-serializable event data
            event_id: Idempotency key; generated when omitted
            occurred_at: Event time; defaults to now (UTC)

        Returns:
            RecordResult with counts of matched, created and duplicate deliveries

        Raises:
            ValueError: If event_type is empty or payload is not a mapping
        """
        if not event_type or not event_type.strip():
            raise ValueError("event_type is required")
        if not isinstance(payload, dict):
            msg = f"payload must be a JSON object, got {type(payload).__name__}"
            raise ValueError(msg)

        event_type = event_type.strip()
        event_id = event_id or generate_event_id()
        occurred_at = occurred_at or datetime.now(UTC)

        if not is_known_event_type(event_type):
            lazy_logger.debug(lambda: f"recorder.record_event: unregistered event type {event_type!r}")

        with tenant_scope(tenant_id, identified_by="record_event"):
            subscriptions = await self.subscriptions.find_active_for_event(session, event_type)

            created_ids = []
            duplicates = 0
            for subscription in subscriptions:
                delivery_id = await self.deliveries.insert_ignoring_conflicts(
                    session,
                    {
                        "subscription_id": subscription.id,
                        "event_id": event_id,
                        "event_type": event_type,
                        "payload": payload,
                        "occurred_at": occurred_at,
                        "status": DeliveryStatus.PENDING.value,
                        "attempt_count": 0,
                        "max_attempts": self.settings.max_attempts,
                    },
                    conflict_columns=DELIVERY_CONFLICT_COLUMNS,
                )
                if delivery_id is None:
                    duplicates += 1
                    logger.info(
                        "Duplicate event ignored",
                        extra={
                            "event_id": event_id,
                            "event_type": event_type,
                            "subscription_id": str(subscription.id),
                            "operation": "recorder.record_event",
                        },
                    )
                    continue
                created_ids.append(delivery_id)

        result = RecordResult(
            event_id=event_id,
            matched=len(subscriptions),
            created=len(created_ids),
            duplicates=duplicates,
            delivery_ids=created_ids,
        )

        if result.matched:
            logger.info(
                "Event recorded",
                extra={
                    "tenant_id": tenant_id,
                    "event_id": event_id,
                    "event_type": event_type,
                    "matched": result.matched,
                    "deliveries_created": result.created,
                    "duplicates": result.duplicates,
                    "operation": "recorder.record_event",
                },
            )
        else:
            lazy_logger.debug(
                lambda: f"recorder.record_event: no subscriptions for {event_type} (tenant={tenant_id})"
            )
        return result


async def record_event(
    tenant_id: str,
    event_type: str,
    payload: dict[str, Any],
    event_id: str | None = None,
    *,
    session: AsyncSession | None = None,
) -> RecordResult:
    """Record an event from business code.

    With an explicit ``session`` the rows join the caller's transaction, so the
    event commits or rolls back with the business change that caused it.
    Without one a short-lived session is opened and committed.

    Example:
        await record_event("biz_1", PaymentEvents.SUCCEEDED, {"amount": 4999}, "evt_1")
    """
    recorder = EventRecorder()
    if session is not None:
        return await recorder.record_event(session, tenant_id, event_type, payload, event_id)

    async with get_async_session() as own_session:
        result = await recorder.record_event(own_session, tenant_id, event_type, payload, event_id)
        await own_session.commit()
        return result


__all__ = ["EventRecorder", "record_event"]
