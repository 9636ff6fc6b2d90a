"""Webhook delivery worker commands."""

import asyncio
import signal

import click

from storefront_events.cli.utils import coro, header, info, key_value, success


@click.group(name="worker")
def worker() -> None:
    """Webhook delivery worker."""


@worker.command(name="run")
@click.option("--once", is_flag=True, help="Process a single batch and exit")
@click.option("--worker-id", help="Identifier used in logs (default: host name plus random suffix)")
@coro
async def run(once: bool, worker_id: str | None) -> None:
    """Claim due deliveries and send them until interrupted.

    Several workers may run against the same database; each delivery is
    leased by exactly one of them at a time.
    """
    from storefront_events.features.webhooks.worker import DeliveryWorker
    from storefront_events.infra.database import get_session_factory

    async with DeliveryWorker(get_session_factory(), worker_id=worker_id) as delivery_worker:
        if once:
            stats = await delivery_worker.run_once()
            header("Delivery Pass")
            key_value("Claimed", stats.claimed)
            key_value("Delivered", stats.delivered)
            key_value("Retry scheduled", stats.retry_scheduled)
            key_value("Failed", stats.failed)
            key_value("Skipped", stats.skipped)
            key_value("Errors", stats.errors)
            success("Pass complete")
            return

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

        info(f"Worker {delivery_worker.worker_id} running (Ctrl+C to stop)")
        await delivery_worker.run_forever(stop_event)
        success("Worker stopped")
