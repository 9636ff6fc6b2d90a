"""Delivery worker: claims due deliveries and sends them.

One pass (``run_once``):

1. Inside ``system_scope``, select pending deliveries whose retry time has
   come and lease each with a conditional UPDATE. Only rows this worker
   leased are processed, so two workers never send the same row at once.
2. Process the claimed rows concurrently, bounded by a semaphore. Each runs
   inside ``tenant_scope`` of the row's tenant. Once a slot is free the
   lease is renewed for a full ``WEBHOOK_LEASE_SECONDS``; if another worker
   reclaimed the row meanwhile it is dropped unsent. ``lease_seconds`` must
   exceed ``timeout_seconds`` so a renewed lease outlives the request.
3. Write the outcome back, guarded by the lease token, and release the lease.

No database connection is held while waiting on a remote endpoint. A worker
that dies mid-delivery leaves a lease that expires after
``WEBHOOK_LEASE_SECONDS``; the row then becomes claimable again.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import socket
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, Self

from storefront_events.core.exceptions import WebhookDeliveryError
from storefront_events.core.settings import get_webhook_settings
from storefront_events.core.tenancy import system_scope, tenant_scope
from storefront_events.features.webhooks.client import WebhookClient
from storefront_events.features.webhooks.policy import decide_next
from storefront_events.features.webhooks.repository import (
    get_delivery_repository,
    get_subscription_repository,
)
from storefront_events.features.webhooks.schemas import DeliveryStatus
from storefront_events.features.webhooks.signing import build_headers, build_webhook_body
from storefront_events.infra.logging import get_lazy_logger, log_context

if TYPE_CHECKING:
    from types import TracebackType
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from storefront_events.core.settings import WebhookSettings
    from storefront_events.features.webhooks.client import WebhookDeliveryResult

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

SKIPPED_INACTIVE_MESSAGE = "Subscription inactive; delivery skipped"


class ProcessOutcome(str, Enum):
    """What happened to one claimed delivery."""

    DELIVERED = "delivered"
    RETRY_SCHEDULED = "retry_scheduled"
    FAILED = "failed"
    SKIPPED = "skipped"
    LEASE_LOST = "lease_lost"
    ERROR = "error"


@dataclass(slots=True, frozen=True)
class DeliveryClaim:
    """A delivery leased by this worker."""

    delivery_id: UUID
    tenant_id: str
    lease_token: str


@dataclass(slots=True, frozen=True)
class _Attempt:
    """Everything needed to send one delivery, detached from the session."""

    delivery_id: UUID
    event_id: str
    event_type: str
    payload: dict[str, Any]
    occurred_at: datetime
    attempt_count: int
    max_attempts: int
    url: str
    secret: str


@dataclass(slots=True)
class WorkerRunStats:
    """Counters for one worker pass."""

    claimed: int = 0
    delivered: int = 0
    retry_scheduled: int = 0
    failed: int = 0
    skipped: int = 0
    lease_lost: int = 0
    errors: int = 0

    def add(self, outcome: ProcessOutcome) -> None:
        match outcome:
            case ProcessOutcome.DELIVERED:
                self.delivered += 1
            case ProcessOutcome.RETRY_SCHEDULED:
                self.retry_scheduled += 1
            case ProcessOutcome.FAILED:
                self.failed += 1
            case ProcessOutcome.SKIPPED:
                self.skipped += 1
            case ProcessOutcome.LEASE_LOST:
                self.lease_lost += 1
            case ProcessOutcome.ERROR:
                self.errors += 1


class DeliveryWorker:
    """Polls the delivery table and sends due webhooks.

    Example:
        async with DeliveryWorker(get_session_factory()) as worker:
            stats = await worker.run_once()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: WebhookClient | None = None,
        settings: WebhookSettings | None = None,
        worker_id: str | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.settings = settings or get_webhook_settings()
        self.worker_id = worker_id or f"{socket.gethostname()}-{secrets.token_hex(4)}"
        self._owns_client = client is None
        self.client = client or WebhookClient.from_settings(self.settings)
        self.subscriptions = get_subscription_repository()
        self.deliveries = get_delivery_repository()
        self._semaphore = asyncio.Semaphore(self.settings.max_concurrency)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this worker created it."""
        if self._owns_client:
            await self.client.aclose()

    # ──────────────────────────────────────────────────────────────
    # Claiming
    # ──────────────────────────────────────────────────────────────

    async def claim_due(self, limit: int | None = None) -> list[DeliveryClaim]:
        """Lease up to ``limit`` due deliveries across all tenants."""
        limit = limit or self.settings.batch_size
        now = datetime.now(UTC)
        leased_until = now + timedelta(seconds=self.settings.lease_seconds)
        claims: list[DeliveryClaim] = []

        with system_scope("delivery worker claiming due deliveries"):
            async with self.session_factory() as session:
                due = await self.deliveries.find_due(session, now, limit=limit)
                for delivery_id, tenant_id in due:
                    lease_token = secrets.token_hex(16)
                    won = await self.deliveries.claim(
                        session,
                        delivery_id,
                        lease_token=lease_token,
                        now=now,
                        leased_until=leased_until,
                    )
                    if won:
                        claims.append(DeliveryClaim(delivery_id, tenant_id, lease_token))
                await session.commit()

        lazy_logger.debug(
            lambda: f"worker.claim_due: worker={self.worker_id}, due={len(due)}, claimed={len(claims)}"
        )
        return claims

    # ──────────────────────────────────────────────────────────────
    # Processing
    # ──────────────────────────────────────────────────────────────

    async def process(self, claim: DeliveryClaim) -> ProcessOutcome:
        """Send one claimed delivery and record the outcome.

        Never raises (except on cancellation). Unexpected errors are logged and
        the row is left leased, so it is retried once the lease expires.
        """
        async with self._semaphore:
            with log_context(delivery_id=str(claim.delivery_id), worker_id=self.worker_id):
                try:
                    with tenant_scope(claim.tenant_id, identified_by="delivery_worker"):
                        return await self._process_claimed(claim)
                except Exception:
                    logger.exception(
                        "Unexpected error while processing webhook delivery",
                        extra={
                            "delivery_id": str(claim.delivery_id),
                            "tenant_id": claim.tenant_id,
                            "operation": "worker.process",
                        },
                    )
                    return ProcessOutcome.ERROR

    async def _load_attempt(self, claim: DeliveryClaim) -> _Attempt | ProcessOutcome:
        # A claim may have waited on the semaphore past its lease; renew it
        # so the row cannot be reclaimed while the request is in flight.
        leased_until = datetime.now(UTC) + timedelta(seconds=self.settings.lease_seconds)
        async with self.session_factory() as session:
            renewed = await self.deliveries.renew_lease(
                session, claim.delivery_id, lease_token=claim.lease_token, leased_until=leased_until
            )
            await session.commit()
            if not renewed:
                logger.info(
                    "Delivery reclaimed by another worker before sending",
                    extra={"delivery_id": str(claim.delivery_id), "operation": "worker.process"},
                )
                return ProcessOutcome.LEASE_LOST

            delivery = await self.deliveries.get(session, claim.delivery_id)
            if delivery is None:
                return ProcessOutcome.LEASE_LOST

            subscription = await self.subscriptions.get(session, delivery.subscription_id)
            if subscription is None or not subscription.is_active:
                await self.deliveries.complete_attempt(
                    session,
                    claim.delivery_id,
                    lease_token=claim.lease_token,
                    values={
                        "status": DeliveryStatus.FAILED.value,
                        "next_retry_at": None,
                        "error_message": SKIPPED_INACTIVE_MESSAGE,
                    },
                )
                await session.commit()
                logger.info(
                    "Webhook delivery skipped for inactive subscription",
                    extra={
                        "delivery_id": str(claim.delivery_id),
                        "subscription_id": str(delivery.subscription_id),
                        "event_id": delivery.event_id,
                        "operation": "worker.process",
                    },
                )
                return ProcessOutcome.SKIPPED

            return _Attempt(
                delivery_id=delivery.id,
                event_id=delivery.event_id,
                event_type=delivery.event_type,
                payload=delivery.payload,
                occurred_at=delivery.occurred_at,
                attempt_count=delivery.attempt_count,
                max_attempts=delivery.max_attempts,
                url=subscription.url,
                secret=subscription.secret,
            )

    async def _process_claimed(self, claim: DeliveryClaim) -> ProcessOutcome:
        attempt = await self._load_attempt(claim)
        if isinstance(attempt, ProcessOutcome):
            return attempt

        body = build_webhook_body(
            attempt.event_id, attempt.event_type, attempt.payload, attempt.occurred_at
        )
        headers = build_headers(
            body=body,
            secret=attempt.secret,
            event_type=attempt.event_type,
            event_id=attempt.event_id,
            user_agent=self.settings.user_agent,
            delivery_id=str(attempt.delivery_id),
        )
        result = await self.client.deliver(attempt.url, body, headers, event_id=attempt.event_id)

        return await self._record_result(claim, attempt, result)

    async def _record_result(
        self,
        claim: DeliveryClaim,
        attempt: _Attempt,
        result: WebhookDeliveryResult,
    ) -> ProcessOutcome:
        finished_at = datetime.now(UTC)
        attempts_made = attempt.attempt_count + 1
        decision = decide_next(
            result.outcome,
            attempts_made,
            attempt.max_attempts,
            finished_at,
            base_delay=self.settings.retry_base_delay_seconds,
            multiplier=self.settings.retry_backoff_multiplier,
            max_delay=self.settings.retry_max_delay_seconds,
        )

        values: dict[str, Any] = {
            "status": decision.status.value,
            "attempt_count": attempts_made,
            "next_retry_at": decision.next_retry_at,
            "last_attempt_at": finished_at,
            "response_status_code": result.status_code,
            "response_body": result.response_body,
            "response_time_ms": result.response_time_ms,
            "error_message": result.error_message,
        }
        if decision.status is DeliveryStatus.DELIVERED:
            values["delivered_at"] = finished_at

        async with self.session_factory() as session:
            recorded = await self.deliveries.complete_attempt(
                session, claim.delivery_id, lease_token=claim.lease_token, values=values
            )
            await session.commit()
        if not recorded:
            return ProcessOutcome.LEASE_LOST

        try:
            result.raise_for_outcome()
        except WebhookDeliveryError as e:
            logger.warning(
                "Webhook delivery attempt failed",
                extra={
                    "delivery_id": str(claim.delivery_id),
                    "event_id": attempt.event_id,
                    "attempt": attempts_made,
                    "max_attempts": attempt.max_attempts,
                    "response_status_code": e.response_status_code,
                    "retryable": e.retryable,
                    "next_retry_at": decision.next_retry_at.isoformat() if decision.next_retry_at else None,
                    "error": e.detail,
                    "operation": "worker.process",
                },
            )
            if decision.status is DeliveryStatus.FAILED:
                return ProcessOutcome.FAILED
            return ProcessOutcome.RETRY_SCHEDULED

        logger.info(
            "Webhook delivered",
            extra={
                "delivery_id": str(claim.delivery_id),
                "event_id": attempt.event_id,
                "attempt": attempts_made,
                "response_status_code": result.status_code,
                "response_time_ms": result.response_time_ms,
                "operation": "worker.process",
            },
        )
        return ProcessOutcome.DELIVERED

    # ──────────────────────────────────────────────────────────────
    # Loops
    # ──────────────────────────────────────────────────────────────

    async def run_once(self) -> WorkerRunStats:
        """Claim one batch and process it concurrently."""
        stats = WorkerRunStats()
        claims = await self.claim_due()
        stats.claimed = len(claims)
        if not claims:
            return stats

        outcomes = await asyncio.gather(*(self.process(claim) for claim in claims))
        for outcome in outcomes:
            stats.add(outcome)

        logger.info(
            "Webhook delivery pass finished",
            extra={
                "worker_id": self.worker_id,
                "claimed": stats.claimed,
                "delivered": stats.delivered,
                "retry_scheduled": stats.retry_scheduled,
                "failed": stats.failed,
                "skipped": stats.skipped,
                "errors": stats.errors,
                "operation": "worker.run_once",
            },
        )
        return stats

    async def run_forever(self, stop_event: asyncio.Event | None = None) -> None:
        """Poll until ``stop_event`` is set.

        A full batch is followed immediately by the next pass; otherwise the
        worker sleeps ``poll_interval_seconds`` or until stopped.
        """
        stop_event = stop_event or asyncio.Event()
        logger.info(
            "Webhook delivery worker started",
            extra={
                "worker_id": self.worker_id,
                "batch_size": self.settings.batch_size,
                "max_concurrency": self.settings.max_concurrency,
                "operation": "worker.run_forever",
            },
        )

        while not stop_event.is_set():
            try:
                stats = await self.run_once()
            except Exception:
                logger.exception(
                    "Webhook delivery pass failed",
                    extra={"worker_id": self.worker_id, "operation": "worker.run_forever"},
                )
                stats = WorkerRunStats()

            if stats.claimed >= self.settings.batch_size:
                continue

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.settings.poll_interval_seconds)
                break
            except TimeoutError:
                continue

        logger.info(
            "Webhook delivery worker stopped",
            extra={"worker_id": self.worker_id, "operation": "worker.run_forever"},
        )


__all__ = [
    "SKIPPED_INACTIVE_MESSAGE",
    "DeliveryClaim",
    "DeliveryWorker",
    "ProcessOutcome",
    "WorkerRunStats",
]
