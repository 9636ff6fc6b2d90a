"""Tenant isolation settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TenancySettings(BaseSettings):
    """Controls how strictly tenant ownership is enforced.

    Environment variables use TENANCY_ prefix.
    Example: TENANCY_STRICT_MODE=false
    """

    strict_mode: bool = Field(
        default=True,
        description=(
            "Reject writes that carry a tenant_id different from the current tenant. "
            "When False the value is overwritten and the attempt is only logged."
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="TENANCY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )


__all__ = ["TenancySettings"]
