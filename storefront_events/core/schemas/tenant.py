"""Tenant-related schemas and models."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


class TenantContext(BaseModel):
    """Tenant context for the current unit of work.

    This model holds tenant information that is propagated through a request
    or job via context variables.
    """

    model_config = ConfigDict(frozen=True)

    tenant_id: str = Field(min_length=1, description="Tenant identifier")
    identified_by: str | None = Field(
        default=None,
        description="How the tenant was identified (header, job payload, cli, etc.)",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the context was created",
    )
