"""Service layer for webhook subscriptions and delivery history.

Every method runs against the current tenant (``tenant_scope``); the
repositories raise ``NoTenantContextError`` otherwise.
"""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

from storefront_events.core.database import utcnow
from storefront_events.core.exceptions import DeliveryNotRetryableError, InvalidSubscriptionError
from storefront_events.core.services.base import BaseService
from storefront_events.core.settings import get_webhook_settings
from storefront_events.core.validators import validate_webhook_url
from storefront_events.features.webhooks.events import is_known_event_type
from storefront_events.features.webhooks.models import WebhookSubscription
from storefront_events.features.webhooks.repository import (
    DeliveryRepository,
    SubscriptionRepository,
    get_delivery_repository,
    get_subscription_repository,
)
from storefront_events.features.webhooks.schemas import (
    DeliveryRead,
    DeliveryStatus,
    SubscriptionCreate,
    SubscriptionCreated,
    SubscriptionRead,
    SubscriptionUpdate,
)

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from storefront_events.core.settings import WebhookSettings

SECRET_BYTES = 32


class SubscriptionService(BaseService):
    """Orchestrates subscription management using repositories.

    The full signing secret leaves this service only as a
    ``SubscriptionCreated`` (from ``create_subscription`` and
    ``rotate_secret``); every other read returns the masked form.
    """

    def __init__(
        self,
        session: AsyncSession,
        subscription_repository: SubscriptionRepository | None = None,
        delivery_repository: DeliveryRepository | None = None,
        settings: WebhookSettings | None = None,
    ) -> None:
        super().__init__()
        self._session = session
        self._subscription_repo = subscription_repository or get_subscription_repository()
        self._delivery_repo = delivery_repository or get_delivery_repository()
        self._settings = settings or get_webhook_settings()

    def validate_url(self, url: str) -> str:
        """Validate a target URL.

        Raises:
            InvalidSubscriptionError: If the URL is unusable or internal
        """
        try:
            return validate_webhook_url(url, allow_private=self._settings.allow_private_urls)
        except ValueError as e:
            raise InvalidSubscriptionError(str(e), field="url") from e

    def validate_events(self, events: list[str]) -> list[str]:
        unknown = [event_type for event_type in events if not is_known_event_type(event_type)]
        if unknown:
            raise InvalidSubscriptionError(
                f"Unknown event types: {', '.join(unknown)}", field="events"
            )
        return events

    def generate_secret(self) -> str:
        """Generate a signing secret from a CSPRNG.

        Returns:
            ``whsec_`` followed by 64 hex characters
        """
        return f"{self._settings.secret_prefix}{secrets.token_hex(SECRET_BYTES)}"

    async def _get(self, subscription_id: UUID) -> WebhookSubscription:
        return await self._subscription_repo.get_or_raise(self._session, subscription_id)

    async def create_subscription(self, payload: SubscriptionCreate) -> SubscriptionCreated:
        """Create a subscription for the current tenant.

        Returns:
            The subscription with its full secret. This is the only time the
            secret is returned.

        Raises:
            InvalidSubscriptionError: If the URL or event types are invalid
        """
        url = self.validate_url(payload.url)
        events = self.validate_events(payload.events)

        subscription = WebhookSubscription(
            url=url,
            description=payload.description,
            event_types=events,
            secret=self.generate_secret(),
            api_version=payload.api_version,
            is_active=True,
        )
        created = await self._subscription_repo.create(self._session, subscription)

        self.logger.info(
            "Webhook subscription created",
            extra={
                "subscription_id": str(created.id),
                "event_types": events,
                "operation": "service.create_subscription",
            },
        )
        return SubscriptionCreated.model_validate(created)

    async def get_subscription(self, subscription_id: UUID) -> SubscriptionRead:
        """Fetch a subscription with its secret masked.

        Raises:
            NotFoundError: If it does not exist for the current tenant
        """
        subscription = await self._get(subscription_id)
        return SubscriptionRead.model_validate(subscription)

    async def list_subscriptions(
        self,
        *,
        is_active: bool | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[SubscriptionRead], int]:
        """List subscriptions with filtering and pagination.

        Returns:
            Tuple of (subscriptions, total count)
        """
        search_result = await self._subscription_repo.search_subscriptions(
            self._session,
            is_active=is_active,
            limit=limit,
            offset=offset,
        )

        self._lazy.debug(
            lambda: f"service.list_subscriptions(is_active={is_active}, limit={limit}, offset={offset}) -> {len(search_result.items)}/{search_result.total}"
        )
        return [SubscriptionRead.model_validate(s) for s in search_result.items], search_result.total

    async def update_subscription(
        self,
        subscription_id: UUID,
        payload: SubscriptionUpdate,
    ) -> SubscriptionRead:
        """Update url, events, description, api_version or active flag.

        The secret is never changed here; use ``rotate_secret``.

        Raises:
            NotFoundError: If it does not exist for the current tenant
            InvalidSubscriptionError: If the URL or event types are invalid
        """
        subscription = await self._get(subscription_id)

        if payload.url is not None:
            subscription.url = self.validate_url(payload.url)
        if payload.events is not None:
            subscription.event_types = self.validate_events(payload.events)
        if payload.description is not None:
            subscription.description = payload.description
        if payload.api_version is not None:
            subscription.api_version = payload.api_version
        if payload.is_active is not None and payload.is_active != subscription.is_active:
            subscription.is_active = payload.is_active
            subscription.deactivated_at = None if payload.is_active else utcnow()

        updated = await self._subscription_repo.update(self._session, subscription)

        self.logger.info(
            "Webhook subscription updated",
            extra={
                "subscription_id": str(subscription_id),
                "fields": sorted(payload.model_dump(exclude_none=True)),
                "operation": "service.update_subscription",
            },
        )
        return SubscriptionRead.model_validate(updated)

    async def deactivate_subscription(self, subscription_id: UUID) -> SubscriptionRead:
        """Stop a subscription from receiving events, keeping its history.

        Pending deliveries are skipped by the worker from now on. Deactivating
        an inactive subscription is a no-op.
        """
        subscription = await self._get(subscription_id)
        if not subscription.is_active:
            return SubscriptionRead.model_validate(subscription)

        subscription.is_active = False
        subscription.deactivated_at = utcnow()
        updated = await self._subscription_repo.update(self._session, subscription)

        self.logger.info(
            "Webhook subscription deactivated",
            extra={"subscription_id": str(subscription_id), "operation": "service.deactivate_subscription"},
        )
        return SubscriptionRead.model_validate(updated)

    async def rotate_secret(self, subscription_id: UUID) -> SubscriptionCreated:
        """Replace the signing secret and return the new one, once."""
        subscription = await self._get(subscription_id)
        subscription.secret = self.generate_secret()
        updated = await self._subscription_repo.update(self._session, subscription)

        # INFO level - security event (secret rotation)
        self.logger.info(
            "Webhook subscription secret rotated",
            extra={"subscription_id": str(subscription_id), "operation": "service.rotate_secret"},
        )
        return SubscriptionCreated.model_validate(updated)

    async def delete_subscription(self, subscription_id: UUID) -> bool:
        """Hard-delete a subscription together with its delivery history.

        Returns:
            True if deleted, False if not found for the current tenant
        """
        subscription = await self._subscription_repo.get(self._session, subscription_id)
        if subscription is None:
            self._lazy.debug(lambda: f"service.delete_subscription({subscription_id}) -> not found")
            return False

        deleted = await self._subscription_repo.delete(self._session, subscription)

        # INFO level - permanent data removal (audit trail)
        self.logger.info(
            "Webhook subscription deleted",
            extra={"subscription_id": str(subscription_id), "operation": "service.delete_subscription"},
        )
        return deleted

    async def list_deliveries(
        self,
        *,
        subscription_id: UUID | None = None,
        status: DeliveryStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[DeliveryRead], int]:
        """List delivery history, newest first.

        Returns:
            Tuple of (deliveries, total count)
        """
        search_result = await self._delivery_repo.search_deliveries(
            self._session,
            subscription_id=subscription_id,
            status=status,
            limit=limit,
            offset=offset,
        )

        self._lazy.debug(
            lambda: f"service.list_deliveries(subscription_id={subscription_id}, status={status}) -> {len(search_result.items)}/{search_result.total}"
        )
        return [DeliveryRead.model_validate(d) for d in search_result.items], search_result.total

    async def get_delivery(self, delivery_id: UUID) -> DeliveryRead:
        """Fetch one delivery.

        Raises:
            NotFoundError: If it does not exist for the current tenant
        """
        delivery = await self._delivery_repo.get_or_raise(self._session, delivery_id)
        return DeliveryRead.model_validate(delivery)

    async def retry_delivery(self, delivery_id: UUID) -> DeliveryRead:
        """Re-queue a failed delivery with a fresh attempt budget.

        Raises:
            NotFoundError: If it does not exist for the current tenant
            DeliveryNotRetryableError: If the delivery is not ``failed``
        """
        delivery = await self._delivery_repo.get_or_raise(self._session, delivery_id)
        if delivery.status != DeliveryStatus.FAILED.value:
            raise DeliveryNotRetryableError(delivery_id, delivery.status)

        requeued = await self._delivery_repo.requeue(
            self._session, delivery_id, max_attempts=self._settings.max_attempts
        )
        if not requeued:
            raise DeliveryNotRetryableError(delivery_id, delivery.status)
        await self._session.refresh(delivery)

        # INFO level - manual intervention (audit trail)
        self.logger.info(
            "Delivery retry requested",
            extra={"delivery_id": str(delivery_id), "operation": "service.retry_delivery"},
        )
        return DeliveryRead.model_validate(delivery)


__all__ = ["SECRET_BYTES", "SubscriptionService"]
