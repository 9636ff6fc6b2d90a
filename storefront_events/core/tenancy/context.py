"""Tenant context carrier.

The active tenant lives in a ``ContextVar``, so every thread and every asyncio
task sees its own value and concurrent units of work never observe each
other's tenant. There is no module-level "current tenant" attribute.

Two kinds of scope exist:

- ``tenant_scope(tenant_id)``: everything inside runs as that tenant. Entering
  a scope for a different tenant while one is active raises
  ``TenantContextConflictError``; re-entering the same tenant is a no-op.
- ``system_scope(reason)``: the only way to run unscoped. Tenant-owned
  repositories stop filtering inside it, and every entry is logged.

The innermost scope wins: a ``tenant_scope`` opened inside a ``system_scope``
is tenant-filtered again, and vice versa.
"""

from __future__ import annotations

import inspect
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

from storefront_events.core.exceptions import NoTenantContextError, TenantContextConflictError
from storefront_events.core.schemas.tenant import TenantContext

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = logging.getLogger(__name__)

_tenant_context: ContextVar[TenantContext | None] = ContextVar("tenant_context", default=None)
_system_scope: ContextVar[str | None] = ContextVar("tenant_system_scope", default=None)


def get_tenant_context() -> TenantContext | None:
    """Get the active tenant context.

    Returns:
        Current tenant context or None outside any tenant scope
    """
    return _tenant_context.get()


def current_tenant() -> str:
    """Return the active tenant id.

    Raises:
        NoTenantContextError: If no tenant scope is active
    """
    context = _tenant_context.get()
    if context is None:
        raise NoTenantContextError()
    return context.tenant_id


def is_system_scope() -> bool:
    """Whether the caller is inside ``system_scope``."""
    return _system_scope.get() is not None


def system_scope_reason() -> str | None:
    return _system_scope.get()


def _normalize_tenant_id(tenant_id: Any) -> str:
    if tenant_id is None:
        raise ValueError("tenant_id is required")
    value = str(tenant_id).strip()
    if not value:
        raise ValueError("tenant_id must not be empty")
    return value


@contextmanager
def tenant_scope(tenant_id: str, identified_by: str | None = None) -> Iterator[TenantContext]:
    """Run the enclosed block as ``tenant_id``.

    Args:
        tenant_id: Tenant to activate
        identified_by: Where the tenant came from (header, job, cli, ...)

    Yields:
        The active TenantContext

    Raises:
        ValueError: If tenant_id is empty
        TenantContextConflictError: If a different tenant is already active

    Example:
        with tenant_scope("biz_1", identified_by="job"):
            await repository.list(session)
    """
    tenant_id = _normalize_tenant_id(tenant_id)
    active = _tenant_context.get()

    if active is not None:
        if active.tenant_id != tenant_id:
            logger.error(
                "Refusing to switch tenant inside an active tenant scope",
                extra={
                    "active_tenant": active.tenant_id,
                    "requested_tenant": tenant_id,
                    "operation": "tenancy.tenant_scope",
                },
            )
            raise TenantContextConflictError(active.tenant_id, tenant_id)
        yield active
        return

    context = TenantContext(tenant_id=tenant_id, identified_by=identified_by)
    tenant_token = _tenant_context.set(context)
    system_token = _system_scope.set(None)
    try:
        yield context
    finally:
        _system_scope.reset(system_token)
        _tenant_context.reset(tenant_token)


@contextmanager
def system_scope(reason: str) -> Iterator[None]:
    """Run the enclosed block without tenant filtering.

    This is the single, explicit bypass of tenant isolation. It is meant for
    cross-tenant maintenance such as the delivery worker claiming due rows.

    Args:
        reason: Short description of why isolation is bypassed (logged)

    Raises:
        ValueError: If reason is empty
    """
    if not reason or not reason.strip():
        raise ValueError("system_scope requires a reason")

    logger.info(
        "Tenant isolation bypassed",
        extra={"reason": reason, "operation": "tenancy.system_scope"},
    )
    system_token = _system_scope.set(reason)
    tenant_token = _tenant_context.set(None)
    try:
        yield
    finally:
        _tenant_context.reset(tenant_token)
        _system_scope.reset(system_token)


def run_with_tenant(tenant_id: str, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Any:
    """Call ``fn(*args, **kwargs)`` inside ``tenant_scope(tenant_id)``.

    For coroutine functions an awaitable is returned; the scope is entered when
    it is awaited, so the tenant is visible across every ``await`` inside.

    Example:
        result = await run_with_tenant("biz_1", service.list_subscriptions, session)
    """
    if inspect.iscoroutinefunction(fn):

        async def _run_async() -> Any:
            with tenant_scope(tenant_id):
                return await fn(*args, **kwargs)

        return _run_async()

    with tenant_scope(tenant_id):
        return fn(*args, **kwargs)


__all__ = [
    "current_tenant",
    "get_tenant_context",
    "is_system_scope",
    "run_with_tenant",
    "system_scope",
    "system_scope_reason",
    "tenant_scope",
]
