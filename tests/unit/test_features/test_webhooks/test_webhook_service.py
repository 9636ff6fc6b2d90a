"""Tests for SubscriptionService."""

from __future__ import annotations

import re
from uuid import uuid4

import pytest

from storefront_events.core.database import NotFoundError
from storefront_events.core.exceptions import DeliveryNotRetryableError, InvalidSubscriptionError
from storefront_events.core.tenancy import tenant_scope
from storefront_events.features.webhooks.models import WebhookDelivery
from storefront_events.features.webhooks.recorder import EventRecorder
from storefront_events.features.webhooks.repository import get_delivery_repository
from storefront_events.features.webhooks.schemas import (
    SECRET_WARNING,
    DeliveryStatus,
    SubscriptionCreate,
    SubscriptionUpdate,
)
from storefront_events.features.webhooks.service import SubscriptionService

SECRET_PATTERN = re.compile(r"whsec_[0-9a-f]{64}")


@pytest.fixture
def service(db_session, webhook_settings) -> SubscriptionService:
    return SubscriptionService(db_session, settings=webhook_settings)


def _create_payload(**overrides) -> SubscriptionCreate:
    data = {"url": "https://hooks.example.com/receive", "events": ["payment.succeeded"]}
    data.update(overrides)
    return SubscriptionCreate(**data)


class TestCreate:
    @pytest.mark.asyncio
    async def test_returns_full_secret_once(self, service) -> None:
        with tenant_scope("biz_1"):
            created = await service.create_subscription(_create_payload(description="orders"))
            fetched = await service.get_subscription(created.id)

        assert SECRET_PATTERN.fullmatch(created.secret)
        assert created.warning == SECRET_WARNING
        assert created.tenant_id == "biz_1"
        assert created.is_active is True
        assert created.events == ["payment.succeeded"]

        assert fetched.secret == f"{created.secret[:8]}..."
        assert created.secret not in fetched.model_dump_json()

    @pytest.mark.asyncio
    async def test_secrets_are_unique(self, service) -> None:
        with tenant_scope("biz_1"):
            first = await service.create_subscription(_create_payload())
            second = await service.create_subscription(_create_payload())
        assert first.secret != second.secret

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["http://127.0.0.1/hook", "http://10.1.2.3/hook", "ftp://example.com/x"])
    async def test_rejects_bad_url(self, service, url: str) -> None:
        with tenant_scope("biz_1"), pytest.raises(InvalidSubscriptionError) as exc_info:
            await service.create_subscription(_create_payload(url=url))
        assert exc_info.value.extra["field"] == "url"
        assert exc_info.value.status_code == 422

    @pytest.mark.asyncio
    async def test_private_url_allowed_when_configured(self, db_session, webhook_settings) -> None:
        settings = webhook_settings.model_copy(update={"allow_private_urls": True})
        service = SubscriptionService(db_session, settings=settings)
        with tenant_scope("biz_1"):
            created = await service.create_subscription(_create_payload(url="http://127.0.0.1:9000/hook"))
        assert created.url == "http://127.0.0.1:9000/hook"

    @pytest.mark.asyncio
    async def test_rejects_unknown_event_type(self, service) -> None:
        with tenant_scope("biz_1"), pytest.raises(InvalidSubscriptionError) as exc_info:
            await service.create_subscription(_create_payload(events=["payment.teleported"]))
        assert exc_info.value.extra["field"] == "events"


class TestRead:
    @pytest.mark.asyncio
    async def test_list_masks_and_filters(self, service) -> None:
        with tenant_scope("biz_1"):
            active = await service.create_subscription(_create_payload())
            inactive = await service.create_subscription(_create_payload())
            await service.deactivate_subscription(inactive.id)

            everything, total = await service.list_subscriptions()
            only_active, active_total = await service.list_subscriptions(is_active=True)

        assert total == 2
        assert all(s.secret.endswith("...") and len(s.secret) == 11 for s in everything)
        assert active_total == 1
        assert [s.id for s in only_active] == [active.id]

    @pytest.mark.asyncio
    async def test_other_tenant_is_not_found(self, service) -> None:
        with tenant_scope("biz_1"):
            created = await service.create_subscription(_create_payload())

        with tenant_scope("biz_2"):
            with pytest.raises(NotFoundError):
                await service.get_subscription(created.id)
            listed, total = await service.list_subscriptions()

        assert listed == []
        assert total == 0


class TestUpdate:
    @pytest.mark.asyncio
    async def test_updates_fields(self, service) -> None:
        with tenant_scope("biz_1"):
            created = await service.create_subscription(_create_payload())
            updated = await service.update_subscription(
                created.id,
                SubscriptionUpdate(
                    url="https://new.example.com/hook",
                    events=["payment.failed", "payment.refunded"],
                    description="finance",
                ),
            )

        assert updated.url == "https://new.example.com/hook"
        assert updated.events == ["payment.failed", "payment.refunded"]
        assert updated.description == "finance"
        assert updated.secret == f"{created.secret[:8]}..."

    @pytest.mark.asyncio
    async def test_toggling_active_tracks_deactivation_time(self, service) -> None:
        with tenant_scope("biz_1"):
            created = await service.create_subscription(_create_payload())
            off = await service.update_subscription(created.id, SubscriptionUpdate(is_active=False))
            on = await service.update_subscription(created.id, SubscriptionUpdate(is_active=True))

        assert off.is_active is False
        assert off.deactivated_at is not None
        assert on.is_active is True
        assert on.deactivated_at is None

    @pytest.mark.asyncio
    async def test_invalid_url_rejected(self, service) -> None:
        with tenant_scope("biz_1"):
            created = await service.create_subscription(_create_payload())
            with pytest.raises(InvalidSubscriptionError):
                await service.update_subscription(created.id, SubscriptionUpdate(url="http://192.168.0.1/h"))

    @pytest.mark.asyncio
    async def test_deactivate_is_idempotent(self, service) -> None:
        with tenant_scope("biz_1"):
            created = await service.create_subscription(_create_payload())
            first = await service.deactivate_subscription(created.id)
            second = await service.deactivate_subscription(created.id)

        assert first.is_active is False
        assert second.deactivated_at == first.deactivated_at

    @pytest.mark.asyncio
    async def test_rotate_secret(self, service) -> None:
        with tenant_scope("biz_1"):
            created = await service.create_subscription(_create_payload())
            rotated = await service.rotate_secret(created.id)
            fetched = await service.get_subscription(created.id)

        assert SECRET_PATTERN.fullmatch(rotated.secret)
        assert rotated.secret != created.secret
        assert fetched.secret == f"{rotated.secret[:8]}..."


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_cascades_to_deliveries(self, db_session, service, webhook_settings) -> None:
        recorder = EventRecorder(settings=webhook_settings)
        with tenant_scope("biz_1"):
            created = await service.create_subscription(_create_payload())
            await recorder.record_event(db_session, "biz_1", "payment.succeeded", {}, "evt_1")
            assert await get_delivery_repository().count(db_session) == 1

            assert await service.delete_subscription(created.id) is True
            assert await get_delivery_repository().count(db_session) == 0
            with pytest.raises(NotFoundError):
                await service.get_subscription(created.id)

    @pytest.mark.asyncio
    async def test_delete_other_tenant_returns_false(self, service) -> None:
        with tenant_scope("biz_1"):
            created = await service.create_subscription(_create_payload())
        with tenant_scope("biz_2"):
            assert await service.delete_subscription(created.id) is False
        with tenant_scope("biz_1"):
            assert (await service.get_subscription(created.id)).id == created.id


class TestDeliveries:
    @pytest.fixture
    async def delivery_id(self, db_session, service, webhook_settings):
        recorder = EventRecorder(settings=webhook_settings)
        with tenant_scope("biz_1"):
            await service.create_subscription(_create_payload())
            result = await recorder.record_event(db_session, "biz_1", "payment.succeeded", {"n": 1}, "evt_1")
        return result.delivery_ids[0]

    async def _fail(self, db_session, delivery_id) -> None:
        with tenant_scope("biz_1"):
            await get_delivery_repository().update_where(
                db_session,
                WebhookDelivery.id == delivery_id,
                values={"status": DeliveryStatus.FAILED.value, "attempt_count": 3, "error_message": "HTTP 500"},
            )

    @pytest.mark.asyncio
    async def test_list_and_get(self, service, delivery_id) -> None:
        with tenant_scope("biz_1"):
            deliveries, total = await service.list_deliveries(status=DeliveryStatus.PENDING)
            delivery = await service.get_delivery(delivery_id)
            failed, failed_total = await service.list_deliveries(status=DeliveryStatus.FAILED)

        assert total == 1
        assert deliveries[0].id == delivery_id
        assert delivery.event_id == "evt_1"
        assert delivery.payload == {"n": 1}
        assert failed == []
        assert failed_total == 0

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_see_deliveries(self, service, delivery_id) -> None:
        with tenant_scope("biz_2"):
            deliveries, total = await service.list_deliveries()
            with pytest.raises(NotFoundError):
                await service.get_delivery(delivery_id)
        assert deliveries == []
        assert total == 0

    @pytest.mark.asyncio
    async def test_retry_failed_delivery(self, db_session, service, delivery_id) -> None:
        await self._fail(db_session, delivery_id)

        with tenant_scope("biz_1"):
            retried = await service.retry_delivery(delivery_id)

        assert retried.status is DeliveryStatus.PENDING
        assert retried.attempt_count == 0
        assert retried.max_attempts == 3
        assert retried.error_message is None
        assert retried.next_retry_at is None

    @pytest.mark.asyncio
    async def test_retry_pending_delivery_rejected(self, service, delivery_id) -> None:
        with tenant_scope("biz_1"), pytest.raises(DeliveryNotRetryableError) as exc_info:
            await service.retry_delivery(delivery_id)
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_retry_unknown_delivery(self, service) -> None:
        with tenant_scope("biz_1"), pytest.raises(NotFoundError):
            await service.retry_delivery(uuid4())
