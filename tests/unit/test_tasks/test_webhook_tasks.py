"""Tests for the webhook background tasks."""

from __future__ import annotations

import pytest
from sqlalchemy import update

from storefront_events.features.webhooks.models import WebhookSubscription
from storefront_events.features.webhooks.recorder import EventRecorder


def test_broker_disabled_without_url() -> None:
    from storefront_events.tasks import broker as broker_module

    assert broker_module.broker is None
    assert broker_module.scheduler is None


@pytest.mark.asyncio
async def test_start_and_stop_without_broker_are_no_ops() -> None:
    from storefront_events.tasks.broker import start_taskiq, stop_taskiq

    await start_taskiq()
    await stop_taskiq()


@pytest.mark.asyncio
async def test_drain_on_empty_queue(app_database) -> None:
    from storefront_events.tasks.webhooks import drain_webhook_deliveries

    result = await drain_webhook_deliveries()

    assert result["claimed"] == 0
    assert result["delivered"] == 0


@pytest.mark.asyncio
async def test_drain_skips_inactive_subscription(
    app_database, session_factory, make_subscription, webhook_settings
) -> None:
    from storefront_events.tasks.webhooks import drain_webhook_deliveries

    subscription = await make_subscription("biz_1", ["payment.succeeded"])
    async with session_factory() as session:
        await EventRecorder(settings=webhook_settings).record_event(
            session, "biz_1", "payment.succeeded", {}, "evt_1"
        )
        await session.execute(
            update(WebhookSubscription)
            .where(WebhookSubscription.id == subscription.id)
            .values(is_active=False)
        )
        await session.commit()

    result = await drain_webhook_deliveries()

    assert result["claimed"] == 1
    assert result["skipped"] == 1
