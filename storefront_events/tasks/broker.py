"""Taskiq broker configuration for background task processing.

The broker is only created when ``TASK_BROKER_URL`` points at RabbitMQ.
Without it ``broker`` and ``scheduler`` are ``None`` and deliveries are
drained by the standalone worker (``storefront-events worker run``).

    taskiq worker storefront_events.tasks.broker:broker
    taskiq scheduler storefront_events.tasks.broker:scheduler
"""

from __future__ import annotations

import logging

from taskiq import TaskiqScheduler
from taskiq.schedule_sources import LabelScheduleSource
from taskiq_aio_pika import AioPikaBroker

from storefront_events.core.settings import get_task_settings
from storefront_events.infra.logging import setup_logging

logger = logging.getLogger(__name__)

task_settings = get_task_settings()
setup_logging()

broker: AioPikaBroker | None = None
scheduler: TaskiqScheduler | None = None

if task_settings.is_configured:
    broker = AioPikaBroker(
        url=task_settings.broker_url,
        queue_name=task_settings.queue_name,
        declare_exchange=True,
        declare_queues=True,
    )
    scheduler = TaskiqScheduler(broker=broker, sources=[LabelScheduleSource(broker)])

    logger.info(
        "Taskiq background task broker configured",
        extra={"queue": task_settings.queue_name},
    )
else:
    logger.debug("TASK_BROKER_URL not set - background tasks disabled")


async def start_taskiq() -> None:
    """Start the broker for enqueuing tasks from this process.

    Raises:
        ConnectionError: If unable to connect to RabbitMQ.
    """
    if broker is None:
        logger.warning("Taskiq broker not configured, skipping startup")
        return

    logger.info("Starting Taskiq broker")
    try:
        await broker.startup()
        logger.info("Taskiq broker started successfully")
    except Exception as e:
        logger.exception("Failed to start Taskiq broker", extra={"error": str(e)})
        raise


async def stop_taskiq() -> None:
    """Stop the broker and close its connections."""
    if broker is None:
        logger.debug("Taskiq broker not configured, skipping shutdown")
        return

    logger.info("Stopping Taskiq broker")
    try:
        await broker.shutdown()
        logger.info("Taskiq broker stopped successfully")
    except Exception as e:
        logger.exception("Error stopping Taskiq broker", extra={"error": str(e)})


# Importing task modules registers them with the broker for the worker process.
if broker is not None:
    import storefront_events.tasks.webhooks  # noqa: F401
