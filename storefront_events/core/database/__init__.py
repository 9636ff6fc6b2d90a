"""Core database package: declarative base, mixins, types and repositories.

Base Classes and Mixins:
    - Base: Declarative base with constraint naming convention
    - UUIDPKMixin: UUID v4 primary key
    - TimestampMixin: created_at, updated_at tracking
    - TenantMixin: non-null tenant_id for tenant-owned models

Repository:
    - BaseRepository[T]: Generic CRUD with explicit session passing
    - TenantScopedRepository[T]: BaseRepository narrowed to the current tenant
    - SearchResult[T]: Paginated result container

Types:
    - StringArray: ARRAY on PostgreSQL, JSON text elsewhere
    - UTCDateTime: timezone-aware datetimes on every backend
"""

from __future__ import annotations

from storefront_events.core.database.base import (
    NAMING_CONVENTION,
    Base,
    TimestampMixin,
    UUIDPKMixin,
    utcnow,
)
from storefront_events.core.database.exceptions import NotFoundError, RepositoryError
from storefront_events.core.database.repository import BaseRepository, SearchResult
from storefront_events.core.database.tenancy import (
    TenantMixin,
    TenantScopedRepository,
    register_tenant_events,
)
from storefront_events.core.database.types import StringArray, UTCDateTime

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "BaseRepository",
    "NotFoundError",
    "RepositoryError",
    "SearchResult",
    "StringArray",
    "TenantMixin",
    "TenantScopedRepository",
    "TimestampMixin",
    "UTCDateTime",
    "UUIDPKMixin",
    "register_tenant_events",
    "utcnow",
]
