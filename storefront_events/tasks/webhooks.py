"""Webhook delivery tasks.

``drain_webhook_deliveries`` runs one ``DeliveryWorker`` pass. With a broker it
is scheduled on ``TASK_DRAIN_CRON``; it can also be awaited directly.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

from storefront_events.core.settings import get_task_settings
from storefront_events.features.webhooks.worker import DeliveryWorker
from storefront_events.infra.database import get_session_factory
from storefront_events.tasks.broker import broker

logger = logging.getLogger(__name__)


async def drain_webhook_deliveries() -> dict[str, Any]:
    """Claim and send one batch of due webhook deliveries.

    Returns:
        Counters of the pass (claimed, delivered, retry_scheduled, ...)
    """
    async with DeliveryWorker(get_session_factory()) as worker:
        stats = await worker.run_once()

    result = asdict(stats)
    logger.info("Webhook drain task finished", extra={**result, "operation": "task.drain_webhook_deliveries"})
    return result


if broker is not None:
    drain_webhook_deliveries_task = broker.task(
        task_name="webhooks.drain_deliveries",
        schedule=[{"cron": get_task_settings().drain_cron}],
    )(drain_webhook_deliveries)
