"""Tests for the tenant context carrier."""

from __future__ import annotations

import asyncio
import threading

import pytest

from storefront_events.core.exceptions import NoTenantContextError, TenantContextConflictError
from storefront_events.core.tenancy import (
    current_tenant,
    get_tenant_context,
    is_system_scope,
    run_with_tenant,
    system_scope,
    system_scope_reason,
    tenant_scope,
)


class TestTenantScope:
    def test_current_tenant_inside_scope(self) -> None:
        with tenant_scope("biz_1", identified_by="test") as context:
            assert current_tenant() == "biz_1"
            assert context.identified_by == "test"

    def test_current_tenant_outside_scope_raises(self) -> None:
        with pytest.raises(NoTenantContextError):
            current_tenant()

    def test_context_cleared_after_scope(self) -> None:
        with tenant_scope("biz_1"):
            pass
        assert get_tenant_context() is None

    def test_context_cleared_after_exception(self) -> None:
        with pytest.raises(RuntimeError), tenant_scope("biz_1"):
            raise RuntimeError("boom")
        assert get_tenant_context() is None

    def test_same_tenant_reentry_is_allowed(self) -> None:
        with tenant_scope("biz_1") as outer, tenant_scope("biz_1") as inner:
            assert inner is outer
            assert current_tenant() == "biz_1"

    def test_switching_tenant_is_rejected(self) -> None:
        with tenant_scope("biz_1"):
            with pytest.raises(TenantContextConflictError), tenant_scope("biz_2"):
                pass
            assert current_tenant() == "biz_1"

    @pytest.mark.parametrize("tenant_id", ["", "   ", None])
    def test_empty_tenant_rejected(self, tenant_id: str | None) -> None:
        with pytest.raises(ValueError), tenant_scope(tenant_id):  # type: ignore[arg-type]
            pass

    def test_tenant_id_is_stripped(self) -> None:
        with tenant_scope("  biz_1 "):
            assert current_tenant() == "biz_1"


class TestSystemScope:
    def test_requires_reason(self) -> None:
        with pytest.raises(ValueError), system_scope(""):
            pass

    def test_clears_tenant_and_restores(self) -> None:
        with tenant_scope("biz_1"):
            with system_scope("maintenance"):
                assert is_system_scope()
                assert system_scope_reason() == "maintenance"
                assert get_tenant_context() is None
                with pytest.raises(NoTenantContextError):
                    current_tenant()
            assert not is_system_scope()
            assert current_tenant() == "biz_1"

    def test_tenant_scope_inside_system_scope_is_tenant_filtered(self) -> None:
        with system_scope("worker"), tenant_scope("biz_2"):
            assert current_tenant() == "biz_2"
            assert not is_system_scope()

    def test_bypass_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level("INFO", logger="storefront_events.core.tenancy.context"), system_scope("audit"):
            pass
        assert any(r.getMessage() == "Tenant isolation bypassed" and r.reason == "audit" for r in caplog.records)


class TestRunWithTenant:
    def test_sync_function(self) -> None:
        assert run_with_tenant("biz_1", current_tenant) == "biz_1"
        assert get_tenant_context() is None

    def test_passes_arguments(self) -> None:
        def describe(prefix: str, *, suffix: str) -> str:
            return f"{prefix}{current_tenant()}{suffix}"

        assert run_with_tenant("biz_1", describe, "<", suffix=">") == "<biz_1>"

    @pytest.mark.asyncio
    async def test_async_function_keeps_tenant_across_awaits(self) -> None:
        async def work() -> list[str]:
            seen = [current_tenant()]
            await asyncio.sleep(0)
            seen.append(current_tenant())
            return seen

        assert await run_with_tenant("biz_1", work) == ["biz_1", "biz_1"]
        assert get_tenant_context() is None


class TestConcurrentIsolation:
    @pytest.mark.asyncio
    async def test_concurrent_tasks_never_observe_each_other(self) -> None:
        async def work(tenant_id: str) -> list[str]:
            seen = []
            with tenant_scope(tenant_id):
                for _ in range(20):
                    await asyncio.sleep(0)
                    seen.append(current_tenant())
            return seen

        tenants = [f"biz_{i}" for i in range(10)]
        results = await asyncio.gather(*(work(t) for t in tenants))

        for tenant_id, seen in zip(tenants, results, strict=True):
            assert set(seen) == {tenant_id}

    def test_threads_are_isolated(self) -> None:
        barrier = threading.Barrier(2)
        observed: dict[str, str | None] = {}

        def work(tenant_id: str) -> None:
            with tenant_scope(tenant_id):
                barrier.wait()
                observed[tenant_id] = current_tenant()

        threads = [threading.Thread(target=work, args=(t,)) for t in ("biz_a", "biz_b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert observed == {"biz_a": "biz_a", "biz_b": "biz_b"}
        assert get_tenant_context() is None
