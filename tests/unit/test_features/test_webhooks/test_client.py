"""Tests for WebhookClient using httpx.MockTransport."""

from __future__ import annotations

import httpx
import pytest

from storefront_events.core.exceptions import DeliveryPermanentError, DeliveryTransientError
from storefront_events.core.settings import WebhookSettings
from storefront_events.features.webhooks.client import WebhookClient
from storefront_events.features.webhooks.policy import AttemptOutcome

URL = "https://hooks.example.com/receive"
BODY = b'{"event_id":"evt_1"}'
HEADERS = {"Content-Type": "application/json", "X-Webhook-Signature": "sha256=abc"}


@pytest.fixture
async def client(receiver):
    async with WebhookClient(transport=receiver.transport) as webhook_client:
        yield webhook_client


class TestDeliver:
    @pytest.mark.asyncio
    async def test_success(self, client, receiver) -> None:
        receiver.reply(httpx.Response(200, text="ok"))

        result = await client.deliver(URL, BODY, HEADERS, event_id="evt_1")

        assert result.success
        assert result.outcome is AttemptOutcome.DELIVERED
        assert result.status_code == 200
        assert result.response_body == "ok"
        assert result.error_message is None
        assert result.response_time_ms is not None
        result.raise_for_outcome()

    @pytest.mark.asyncio
    async def test_sends_exact_body_and_headers(self, client, receiver) -> None:
        await client.deliver(URL, BODY, HEADERS)

        request = receiver.requests[0]
        assert request.method == "POST"
        assert str(request.url) == URL
        assert request.content == BODY
        assert request.headers["X-Webhook-Signature"] == "sha256=abc"

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self, client, receiver) -> None:
        receiver.reply(httpx.Response(503, text="unavailable"))

        result = await client.deliver(URL, BODY, HEADERS)

        assert result.retryable
        assert result.status_code == 503
        assert result.error_message == "HTTP 503"
        with pytest.raises(DeliveryTransientError) as exc_info:
            result.raise_for_outcome()
        assert exc_info.value.response_status_code == 503
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_rate_limited_is_transient(self, client, receiver) -> None:
        receiver.reply(httpx.Response(429))
        assert (await client.deliver(URL, BODY, HEADERS)).retryable

    @pytest.mark.asyncio
    async def test_client_error_is_permanent(self, client, receiver) -> None:
        receiver.reply(httpx.Response(400, text="bad payload"))

        result = await client.deliver(URL, BODY, HEADERS)

        assert result.outcome is AttemptOutcome.PERMANENT
        assert result.response_body == "bad payload"
        with pytest.raises(DeliveryPermanentError) as exc_info:
            result.raise_for_outcome()
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_redirect_is_not_followed(self, client, receiver) -> None:
        receiver.reply(httpx.Response(302, headers={"Location": "https://elsewhere.example.com"}))

        result = await client.deliver(URL, BODY, HEADERS)

        assert result.outcome is AttemptOutcome.PERMANENT
        assert len(receiver.requests) == 1

    @pytest.mark.asyncio
    async def test_timeout_is_transient(self, client, receiver) -> None:
        receiver.reply(httpx.ReadTimeout("read timed out"))

        result = await client.deliver(URL, BODY, HEADERS)

        assert result.retryable
        assert result.status_code is None
        assert result.error_message.startswith("Request timeout")

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self, client, receiver) -> None:
        receiver.reply(httpx.ConnectError("connection refused"))

        result = await client.deliver(URL, BODY, HEADERS)

        assert result.retryable
        assert result.status_code is None
        assert "ConnectError" in result.error_message

    @pytest.mark.asyncio
    async def test_response_body_is_truncated(self, client, receiver) -> None:
        receiver.reply(httpx.Response(500, text="x" * 6000))

        result = await client.deliver(URL, BODY, HEADERS)

        assert len(result.response_body) == 5000


@pytest.mark.asyncio
async def test_from_settings(receiver) -> None:
    settings = WebhookSettings(timeout_seconds=12.0, response_body_max_chars=10)
    async with WebhookClient.from_settings(settings, transport=receiver.transport) as client:
        receiver.reply(httpx.Response(500, text="y" * 50))
        result = await client.deliver(URL, BODY, HEADERS)

    assert client.timeout_seconds == 12.0
    assert result.response_body == "y" * 10
