"""Tests for event recording and delivery fan-out."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from storefront_events.core.tenancy import system_scope, tenant_scope
from storefront_events.features.webhooks.recorder import EventRecorder, record_event
from storefront_events.features.webhooks.repository import get_delivery_repository
from storefront_events.features.webhooks.schemas import DeliveryStatus


async def _deliveries(session_factory, tenant_id: str):
    async with session_factory() as session:
        with tenant_scope(tenant_id):
            return list(await get_delivery_repository().list(session))


@pytest.fixture
def recorder(webhook_settings) -> EventRecorder:
    return EventRecorder(settings=webhook_settings)


class TestFanOut:
    @pytest.mark.asyncio
    async def test_one_pending_delivery_per_matching_subscription(
        self, session_factory, make_subscription, recorder
    ) -> None:
        first = await make_subscription("biz_1", ["payment.succeeded"])
        second = await make_subscription("biz_1", ["payment.succeeded", "payment.failed"])
        await make_subscription("biz_1", ["payment.failed"])
        await make_subscription("biz_1", ["payment.succeeded"], is_active=False)
        await make_subscription("biz_2", ["payment.succeeded"])

        async with session_factory() as session:
            result = await recorder.record_event(
                session, "biz_1", "payment.succeeded", {"amount": 4999}, "evt_1"
            )
            await session.commit()

        assert result.matched == 2
        assert result.created == 2
        assert result.duplicates == 0

        rows = await _deliveries(session_factory, "biz_1")
        assert {d.subscription_id for d in rows} == {first.id, second.id}
        for delivery in rows:
            assert delivery.tenant_id == "biz_1"
            assert delivery.status == DeliveryStatus.PENDING.value
            assert delivery.attempt_count == 0
            assert delivery.max_attempts == 3
            assert delivery.next_retry_at is None
            assert delivery.payload == {"amount": 4999}

        assert await _deliveries(session_factory, "biz_2") == []

    @pytest.mark.asyncio
    async def test_logs_recorded_event_at_info(
        self, session_factory, make_subscription, recorder, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level("INFO", logger="storefront_events.features.webhooks.recorder")
        await make_subscription("biz_1", ["payment.succeeded"])

        async with session_factory() as session:
            result = await recorder.record_event(session, "biz_1", "payment.succeeded", {"amount": 4999}, "evt_1")
            await session.commit()

        [record] = [r for r in caplog.records if r.getMessage() == "Event recorded"]
        assert record.deliveries_created == 1
        assert record.matched == 1
        assert record.event_id == "evt_1"
        assert result.created == 1

    @pytest.mark.asyncio
    async def test_no_subscribers_is_a_no_op(self, session_factory, recorder) -> None:
        async with session_factory() as session:
            result = await recorder.record_event(session, "biz_1", "payment.refunded", {})

        assert result.matched == 0
        assert result.created == 0

    @pytest.mark.asyncio
    async def test_generates_event_id(self, session_factory, make_subscription, recorder) -> None:
        await make_subscription("biz_1", ["payment.succeeded"])

        async with session_factory() as session:
            result = await recorder.record_event(session, "biz_1", "payment.succeeded", {})
            await session.commit()

        assert result.event_id.startswith("evt_")
        [delivery] = await _deliveries(session_factory, "biz_1")
        assert delivery.event_id == result.event_id

    @pytest.mark.asyncio
    async def test_occurred_at_is_kept(self, session_factory, make_subscription, recorder) -> None:
        await make_subscription("biz_1", ["payment.succeeded"])
        occurred_at = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)

        async with session_factory() as session:
            await recorder.record_event(
                session, "biz_1", "payment.succeeded", {}, "evt_1", occurred_at=occurred_at
            )
            await session.commit()

        [delivery] = await _deliveries(session_factory, "biz_1")
        assert delivery.occurred_at == occurred_at

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("event_type", "payload"), [("", {}), ("   ", {}), ("payment.succeeded", [1, 2])])
    async def test_rejects_invalid_input(self, db_session, recorder, event_type, payload) -> None:
        with pytest.raises(ValueError):
            await recorder.record_event(db_session, "biz_1", event_type, payload)

    @pytest.mark.asyncio
    async def test_records_from_system_scope(self, db_session, recorder) -> None:
        with system_scope("test: replay"):
            result = await recorder.record_event(db_session, "biz_1", "payment.succeeded", {}, "evt_1")
            assert result.matched == 0


class TestIdempotency:
    @pytest.mark.asyncio
    async def test_same_event_twice_creates_one_row(
        self, session_factory, make_subscription, recorder, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level("INFO", logger="storefront_events.features.webhooks.recorder")
        await make_subscription("biz_1", ["payment.succeeded"])

        async with session_factory() as session:
            first = await recorder.record_event(session, "biz_1", "payment.succeeded", {"n": 1}, "evt_1")
            second = await recorder.record_event(session, "biz_1", "payment.succeeded", {"n": 2}, "evt_1")
            await session.commit()

        assert (first.created, first.duplicates) == (1, 0)
        assert (second.created, second.duplicates) == (0, 1)
        assert any(r.getMessage() == "Duplicate event ignored" for r in caplog.records)

        [delivery] = await _deliveries(session_factory, "biz_1")
        assert delivery.payload == {"n": 1}

    @pytest.mark.asyncio
    async def test_concurrent_recording_then_new_event(
        self, session_factory, make_subscription, recorder
    ) -> None:
        await make_subscription("biz_1", ["payment.succeeded"])

        async def record(event_id: str):
            async with session_factory() as session:
                result = await recorder.record_event(
                    session, "biz_1", "payment.succeeded", {"amount": 4999}, event_id
                )
                await session.commit()
                return result

        results = await asyncio.gather(record("evt_1"), record("evt_1"))

        assert sorted(r.created for r in results) == [0, 1]
        assert len(await _deliveries(session_factory, "biz_1")) == 1

        await record("evt_2")
        rows = await _deliveries(session_factory, "biz_1")
        assert sorted(d.event_id for d in rows) == ["evt_1", "evt_2"]

    @pytest.mark.asyncio
    async def test_same_event_id_in_other_tenant_is_independent(
        self, session_factory, make_subscription, recorder
    ) -> None:
        await make_subscription("biz_1", ["payment.succeeded"])
        await make_subscription("biz_2", ["payment.succeeded"])

        async with session_factory() as session:
            await recorder.record_event(session, "biz_1", "payment.succeeded", {}, "evt_1")
            result = await recorder.record_event(session, "biz_2", "payment.succeeded", {}, "evt_1")
            await session.commit()

        assert result.created == 1
        assert len(await _deliveries(session_factory, "biz_2")) == 1


class TestRecordEventFunction:
    @pytest.mark.asyncio
    async def test_joins_callers_transaction(self, session_factory, make_subscription) -> None:
        await make_subscription("biz_1", ["payment.succeeded"])

        async with session_factory() as session:
            result = await record_event("biz_1", "payment.succeeded", {}, "evt_1", session=session)
            await session.rollback()

        assert result.created == 1
        assert await _deliveries(session_factory, "biz_1") == []

    @pytest.mark.asyncio
    async def test_opens_and_commits_own_session(
        self, app_database, session_factory, make_subscription, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level("INFO", logger="storefront_events")
        await make_subscription("biz_1", ["payment.succeeded"])

        result = await record_event("biz_1", "payment.succeeded", {"amount": 1}, "evt_1")

        assert result.created == 1
        [delivery] = await _deliveries(session_factory, "biz_1")
        assert delivery.event_id == "evt_1"
