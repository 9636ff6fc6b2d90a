"""Repositories for the webhooks feature.

Both models are tenant-owned, so both repositories are tenant scoped: inside
``tenant_scope`` they only ever see the current tenant's rows. The worker's
cross-tenant claim query runs inside ``system_scope``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import String, func, or_, select, type_coerce
from sqlalchemy.dialects.postgresql import ARRAY

from storefront_events.core.database import SearchResult, TenantScopedRepository
from storefront_events.features.webhooks.models import WebhookDelivery, WebhookSubscription
from storefront_events.features.webhooks.schemas import DeliveryStatus

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession


class SubscriptionRepository(TenantScopedRepository[WebhookSubscription]):
    """Repository for WebhookSubscription.

    Inherits tenant-scoped CRUD from TenantScopedRepository. Feature-specific
    queries below.
    """

    def __init__(self) -> None:
        super().__init__(WebhookSubscription)

    async def find_active_for_event(
        self,
        session: AsyncSession,
        event_type: str,
    ) -> Sequence[WebhookSubscription]:
        """Active subscriptions of the current tenant listening to ``event_type``.

        PostgreSQL filters with the array containment operator. Other
        backends store the list as JSON text and are filtered in Python.
        """
        stmt = (
            self._select("find_active_for_event")
            .where(WebhookSubscription.is_active.is_(True))
            .order_by(WebhookSubscription.created_at.asc())
        )

        if session.get_bind().dialect.name == "postgresql":
            stmt = stmt.where(
                type_coerce(WebhookSubscription.event_types, ARRAY(String(100))).contains([event_type])
            )
            items = (await session.execute(stmt)).scalars().all()
        else:
            candidates = (await session.execute(stmt)).scalars().all()
            items = [sub for sub in candidates if sub.listens_to(event_type)]

        self._lazy.debug(
            lambda: f"db.find_active_for_event: event_type={event_type!r} -> {len(items)} items"
        )
        return items

    async def search_subscriptions(
        self,
        session: AsyncSession,
        *,
        is_active: bool | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> SearchResult[WebhookSubscription]:
        stmt = select(WebhookSubscription)
        if is_active is not None:
            stmt = stmt.where(WebhookSubscription.is_active.is_(is_active))
        stmt = stmt.order_by(WebhookSubscription.created_at.desc())

        search_result = await self.search(session, stmt, limit=limit, offset=offset)

        self._lazy.debug(
            lambda: f"db.search_subscriptions: is_active={is_active} -> {len(search_result.items)}/{search_result.total}"
        )
        return search_result


class DeliveryRepository(TenantScopedRepository[WebhookDelivery]):
    """Repository for WebhookDelivery.

    Writes made by the worker are conditional UPDATEs so that a claim, and
    the outcome recorded under it, can never clobber another worker's.
    """

    def __init__(self) -> None:
        super().__init__(WebhookDelivery)

    async def search_deliveries(
        self,
        session: AsyncSession,
        *,
        subscription_id: UUID | None = None,
        status: DeliveryStatus | str | None = None,
        event_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> SearchResult[WebhookDelivery]:
        stmt = select(WebhookDelivery)
        if subscription_id is not None:
            stmt = stmt.where(WebhookDelivery.subscription_id == subscription_id)
        if status is not None:
            stmt = stmt.where(WebhookDelivery.status == DeliveryStatus(status).value)
        if event_id is not None:
            stmt = stmt.where(WebhookDelivery.event_id == event_id)
        stmt = stmt.order_by(WebhookDelivery.created_at.desc())

        search_result = await self.search(session, stmt, limit=limit, offset=offset)

        self._lazy.debug(
            lambda: f"db.search_deliveries: subscription_id={subscription_id}, status={status} -> {len(search_result.items)}/{search_result.total}"
        )
        return search_result

    @staticmethod
    def _due_criteria(now: datetime) -> list[Any]:
        return [
            WebhookDelivery.status == DeliveryStatus.PENDING.value,
            or_(WebhookDelivery.next_retry_at.is_(None), WebhookDelivery.next_retry_at <= now),
            or_(WebhookDelivery.leased_until.is_(None), WebhookDelivery.leased_until < now),
        ]

    async def find_due(
        self,
        session: AsyncSession,
        now: datetime,
        *,
        limit: int = 100,
    ) -> list[tuple[UUID, str]]:
        """``(id, tenant_id)`` of pending, unleased deliveries whose retry time has come.

        Earliest due first: a retry is ordered by its ``next_retry_at``, a new
        row by ``created_at``. Run inside ``system_scope`` to see every tenant.
        """
        stmt = (
            select(WebhookDelivery.id, WebhookDelivery.tenant_id)
            .where(*self._scope_criteria("find_due"), *self._due_criteria(now))
            .order_by(func.coalesce(WebhookDelivery.next_retry_at, WebhookDelivery.created_at).asc())
            .limit(limit)
        )
        rows = [(row.id, row.tenant_id) for row in await session.execute(stmt)]

        self._lazy.debug(lambda: f"db.find_due: as_of={now.isoformat()} -> {len(rows)} due")
        return rows

    async def claim(
        self,
        session: AsyncSession,
        delivery_id: UUID,
        *,
        lease_token: str,
        now: datetime,
        leased_until: datetime,
    ) -> bool:
        """Atomically lease one due delivery.

        Returns:
            True if this call won the claim
        """
        claimed = await self.update_where(
            session,
            WebhookDelivery.id == delivery_id,
            *self._due_criteria(now),
            values={"lease_token": lease_token, "leased_until": leased_until},
        )
        return claimed == 1

    async def renew_lease(
        self,
        session: AsyncSession,
        delivery_id: UUID,
        *,
        lease_token: str,
        leased_until: datetime,
    ) -> bool:
        """Push the lease of a row this worker still holds to ``leased_until``.

        Succeeds even if the lease already ran out, as long as no other worker
        reclaimed the row (a reclaim replaces the token). Once renewed the row
        is not due again until ``leased_until``.

        Returns:
            False if another worker holds the row now
        """
        renewed = await self.update_where(
            session,
            WebhookDelivery.id == delivery_id,
            WebhookDelivery.lease_token == lease_token,
            WebhookDelivery.status == DeliveryStatus.PENDING.value,
            values={"leased_until": leased_until},
        )
        return renewed == 1

    async def complete_attempt(
        self,
        session: AsyncSession,
        delivery_id: UUID,
        *,
        lease_token: str,
        values: dict[str, Any],
    ) -> bool:
        """Record an attempt's outcome and release the lease.

        Only applies while ``lease_token`` still holds the row.

        Returns:
            False if the lease was lost (the row was reclaimed meanwhile)
        """
        values = {**values, "lease_token": None, "leased_until": None}
        updated = await self.update_where(
            session,
            WebhookDelivery.id == delivery_id,
            WebhookDelivery.lease_token == lease_token,
            values=values,
        )
        if updated != 1:
            self._logger.warning(
                "Delivery lease lost before outcome was recorded",
                extra={"delivery_id": str(delivery_id), "operation": "db.complete_attempt"},
            )
        return updated == 1

    async def requeue(
        self,
        session: AsyncSession,
        delivery_id: UUID,
        *,
        max_attempts: int,
    ) -> int:
        """Return a failed delivery to the queue with a fresh attempt budget."""
        return await self.update_where(
            session,
            WebhookDelivery.id == delivery_id,
            WebhookDelivery.status == DeliveryStatus.FAILED.value,
            values={
                "status": DeliveryStatus.PENDING.value,
                "attempt_count": 0,
                "max_attempts": max_attempts,
                "next_retry_at": None,
                "error_message": None,
                "lease_token": None,
                "leased_until": None,
            },
        )


# Factory functions for dependency injection
_subscription_repository: SubscriptionRepository | None = None
_delivery_repository: DeliveryRepository | None = None


def get_subscription_repository() -> SubscriptionRepository:
    """Get the shared SubscriptionRepository instance."""
    global _subscription_repository
    if _subscription_repository is None:
        _subscription_repository = SubscriptionRepository()
    return _subscription_repository


def get_delivery_repository() -> DeliveryRepository:
    """Get the shared DeliveryRepository instance."""
    global _delivery_repository
    if _delivery_repository is None:
        _delivery_repository = DeliveryRepository()
    return _delivery_repository


__all__ = [
    "DeliveryRepository",
    "SubscriptionRepository",
    "get_delivery_repository",
    "get_subscription_repository",
]
