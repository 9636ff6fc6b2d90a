"""Tenant context propagation.

Usage:
    from storefront_events.core.tenancy import current_tenant, tenant_scope

    with tenant_scope("biz_1"):
        assert current_tenant() == "biz_1"
"""

from __future__ import annotations

from .context import (
    current_tenant,
    get_tenant_context,
    is_system_scope,
    run_with_tenant,
    system_scope,
    system_scope_reason,
    tenant_scope,
)

__all__ = [
    "current_tenant",
    "get_tenant_context",
    "is_system_scope",
    "run_with_tenant",
    "system_scope",
    "system_scope_reason",
    "tenant_scope",
]
