"""HTTP client for webhook delivery."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Self

import httpx

from storefront_events.core.exceptions import DeliveryPermanentError, DeliveryTransientError
from storefront_events.features.webhooks.policy import AttemptOutcome, classify_status
from storefront_events.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from types import TracebackType

    from storefront_events.core.settings import WebhookSettings

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


@dataclass(slots=True)
class WebhookDeliveryResult:
    """Result of a webhook delivery attempt."""

    outcome: AttemptOutcome
    status_code: int | None
    response_body: str | None
    response_time_ms: int | None
    error_message: str | None

    @property
    def success(self) -> bool:
        return self.outcome is AttemptOutcome.DELIVERED

    @property
    def retryable(self) -> bool:
        return self.outcome is AttemptOutcome.TRANSIENT

    def raise_for_outcome(self) -> None:
        """Raise the matching delivery error unless the attempt succeeded.

        Raises:
            DeliveryTransientError: 5xx, 429, timeout or transport failure
            DeliveryPermanentError: any other non-2xx response
        """
        if self.outcome is AttemptOutcome.TRANSIENT:
            raise DeliveryTransientError(
                self.error_message or "Transient delivery failure",
                status_code=self.status_code,
                response_body=self.response_body,
            )
        if self.outcome is AttemptOutcome.PERMANENT:
            raise DeliveryPermanentError(
                self.error_message or "Permanent delivery failure",
                status_code=self.status_code,
                response_body=self.response_body,
            )


class WebhookClient:
    """HTTP client for delivering signed webhook bodies.

    One instance wraps one pooled ``httpx.AsyncClient``; share it across
    deliveries and close it with ``aclose()`` (or use ``async with``).

    Handles:
    - Per-request timeout plus an outer hard deadline
    - Transport and timeout errors (reported, never raised)
    - Response capture, truncated to ``response_body_max_chars``
    """

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        connect_timeout_seconds: float = 10.0,
        *,
        max_connections: int = 100,
        response_body_max_chars: int = 5000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize webhook client.

        Args:
            timeout_seconds: Total time allowed for one request
            connect_timeout_seconds: Time allowed to establish the connection
            max_connections: Connection pool size
            response_body_max_chars: Stored response bodies are cut to this length
            transport: Optional httpx transport (tests use ``httpx.MockTransport``)
        """
        self.timeout_seconds = timeout_seconds
        self.response_body_max_chars = response_body_max_chars
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=min(connect_timeout_seconds, timeout_seconds)),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_connections,
            ),
            follow_redirects=False,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: WebhookSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> Self:
        return cls(
            timeout_seconds=settings.timeout_seconds,
            connect_timeout_seconds=settings.connect_timeout_seconds,
            max_connections=settings.max_connections,
            response_body_max_chars=settings.response_body_max_chars,
            transport=transport,
        )

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
        await self._client.aclose()

    def _truncate(self, text: str | None) -> str | None:
        if not text:
            return text
        return text[: self.response_body_max_chars]

    async def deliver(
        self,
        url: str,
        body: bytes,
        headers: dict[str, str],
        *,
        event_id: str | None = None,
    ) -> WebhookDeliveryResult:
        """POST a pre-serialized, pre-signed body.

        Never raises for HTTP or network failures; the outcome is reported in
        the result.
        """
        start_time = time.perf_counter()
        lazy_logger.debug(lambda: f"client.deliver: event_id={event_id}, url={url}, bytes={len(body)}")

        def elapsed_ms() -> int:
            return int((time.perf_counter() - start_time) * 1000)

        try:
            response = await asyncio.wait_for(
                self._client.post(url, content=body, headers=headers),
                timeout=self.timeout_seconds,
            )
        except (httpx.TimeoutException, TimeoutError):
            logger.warning(
                "Webhook delivery timeout",
                extra={
                    "event_id": event_id,
                    "timeout_seconds": self.timeout_seconds,
                    "operation": "client.deliver",
                },
            )
            return WebhookDeliveryResult(
                outcome=AttemptOutcome.TRANSIENT,
                status_code=None,
                response_body=None,
                response_time_ms=elapsed_ms(),
                error_message=f"Request timeout after {self.timeout_seconds}s",
            )
        except httpx.RequestError as e:
            logger.warning(
                "Webhook delivery request error",
                extra={"event_id": event_id, "error": str(e), "operation": "client.deliver"},
            )
            return WebhookDeliveryResult(
                outcome=AttemptOutcome.TRANSIENT,
                status_code=None,
                response_body=None,
                response_time_ms=elapsed_ms(),
                error_message=f"Request error: {e.__class__.__name__}: {e}",
            )

        response_time_ms = elapsed_ms()
        outcome = classify_status(response.status_code)
        response_body = self._truncate(response.text)

        log = logger.info if outcome is AttemptOutcome.DELIVERED else logger.warning
        log(
            "Webhook endpoint responded",
            extra={
                "event_id": event_id,
                "status_code": response.status_code,
                "outcome": outcome.value,
                "response_time_ms": response_time_ms,
                "operation": "client.deliver",
            },
        )

        return WebhookDeliveryResult(
            outcome=outcome,
            status_code=response.status_code,
            response_body=response_body,
            response_time_ms=response_time_ms,
            error_message=None if outcome is AttemptOutcome.DELIVERED else f"HTTP {response.status_code}",
        )


__all__ = ["WebhookClient", "WebhookDeliveryResult"]
