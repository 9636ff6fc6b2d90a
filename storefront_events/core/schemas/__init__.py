"""Shared pydantic schemas."""

from __future__ import annotations

from .tenant import TenantContext

__all__ = ["TenantContext"]
