"""Service layer base classes."""

from __future__ import annotations

from storefront_events.core.services.base import BaseService

__all__ = ["BaseService"]
