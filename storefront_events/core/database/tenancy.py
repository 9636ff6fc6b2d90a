"""Tenant isolation for tenant-owned models.

This module provides:
- ``TenantMixin``: the non-null, indexed ``tenant_id`` column
- ``TenantScopedRepository``: a repository whose every statement is narrowed
  to the current tenant (the only supported way to reach tenant-owned rows)
- ORM guard events: a second line of defence for writes that bypass the
  repository

Rules enforced for the current tenant ``T``:

- create: ``tenant_id`` is set to ``T``; a different caller value is a
  cross-tenant violation (rejected in strict mode, overwritten otherwise)
- read: ``tenant_id = T`` is ANDed into the WHERE clause
- update/delete: the target filter is intersected with ``tenant_id = T`` and
  ``tenant_id`` is never writable; rows of other tenants are simply not
  affected and the row count tells the caller so
- no tenant in scope: ``NoTenantContextError``, unless inside ``system_scope``
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import String, event
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Mapped, mapped_column

from storefront_events.core.database.repository import BaseRepository
from storefront_events.core.exceptions import CrossTenantViolationError, NoTenantContextError
from storefront_events.core.settings import get_tenancy_settings
from storefront_events.core.tenancy.context import get_tenant_context, is_system_scope

if TYPE_CHECKING:
    from sqlalchemy.sql import ColumnElement

logger = logging.getLogger(__name__)

TENANT_FIELD = "tenant_id"


class TenantMixin:
    """Mixin for tenant-owned models.

    Example:
        class WebhookSubscription(Base, UUIDPKMixin, TenantMixin):
            __tablename__ = "webhook_subscriptions"
    """

    __allow_unmapped__ = True

    tenant_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Tenant identifier for data isolation",
    )


def _original_tenant(instance: Any) -> Any:
    """Tenant id as loaded from the database, ignoring unflushed changes."""
    history = sa_inspect(instance).attrs[TENANT_FIELD].history
    if history.deleted:
        return history.deleted[0]
    if history.unchanged:
        return history.unchanged[0]
    return None


def _log_violation(model_name: str, current: str, attempted: Any, operation: str, *, strict: bool) -> None:
    logger.warning(
        "Cross-tenant violation attempt",
        extra={
            "model": model_name,
            "current_tenant": current,
            "attempted_tenant": str(attempted),
            "operation": f"tenancy.{operation}",
            "rejected": strict,
        },
    )


class TenantScopedRepository[T](BaseRepository[T]):
    """Repository for models carrying ``TenantMixin``.

    The tenant is read from the ambient tenant context on every call, so one
    repository instance is safely shared across concurrent tasks.

    Example:
        repo = TenantScopedRepository(WebhookSubscription)
        with tenant_scope("biz_1"):
            subs = await repo.list(session)                  # only biz_1 rows
            n = await repo.delete_where(session, WebhookSubscription.id == other_id)
            assert n == 0                                    # other tenant's row untouched
    """

    __slots__ = ("_strict",)

    def __init__(self, model: type[T], *, strict: bool | None = None) -> None:
        if not hasattr(model, TENANT_FIELD):
            msg = f"{model.__name__} does not have a {TENANT_FIELD} column"
            raise TypeError(msg)
        super().__init__(model)
        self._strict = strict

    @property
    def strict(self) -> bool:
        if self._strict is not None:
            return self._strict
        return get_tenancy_settings().strict_mode

    def _tenant_for(self, operation: str) -> str | None:
        """Current tenant id, or None inside ``system_scope``."""
        context = get_tenant_context()
        if context is not None:
            return context.tenant_id
        if is_system_scope():
            return None
        self._logger.error(
            "Tenant-owned data accessed without tenant context",
            extra={"entity": self.model.__name__, "operation": f"tenancy.{operation}"},
        )
        raise NoTenantContextError(f"{self.model.__name__}.{operation}")

    def _scope_criteria(self, operation: str) -> list[ColumnElement[bool]]:
        tenant_id = self._tenant_for(operation)
        if tenant_id is None:
            return []
        return [getattr(self.model, TENANT_FIELD) == tenant_id]

    def _prepare_new(self, instance: T, operation: str) -> None:
        tenant_id = self._tenant_for(operation)
        supplied = getattr(instance, TENANT_FIELD, None)

        if tenant_id is None:
            # system scope: the caller must say which tenant owns the row
            if not supplied:
                raise NoTenantContextError(f"{self.model.__name__}.{operation}")
            return

        if supplied and supplied != tenant_id:
            _log_violation(self.model.__name__, tenant_id, supplied, operation, strict=self.strict)
            if self.strict:
                raise CrossTenantViolationError(self.model.__name__, tenant_id, supplied, operation)
        setattr(instance, TENANT_FIELD, tenant_id)

    def _prepare_values(self, values: dict[str, Any], operation: str) -> dict[str, Any]:
        tenant_id = self._tenant_for(operation)
        values = dict(values)

        if operation == "insert":
            supplied = values.get(TENANT_FIELD)
            if tenant_id is None:
                if not supplied:
                    raise NoTenantContextError(f"{self.model.__name__}.{operation}")
                return values
            if supplied and supplied != tenant_id:
                _log_violation(self.model.__name__, tenant_id, supplied, operation, strict=self.strict)
                if self.strict:
                    raise CrossTenantViolationError(self.model.__name__, tenant_id, supplied, operation)
            values[TENANT_FIELD] = tenant_id
            return values

        if TENANT_FIELD in values:
            supplied = values.pop(TENANT_FIELD)
            if supplied != tenant_id:
                _log_violation(
                    self.model.__name__, str(tenant_id), supplied, operation, strict=self.strict
                )
                if self.strict:
                    raise CrossTenantViolationError(
                        self.model.__name__, str(tenant_id), supplied, operation
                    )
        return values

    def _check_owned(self, instance: T, operation: str) -> bool:
        tenant_id = self._tenant_for(operation)
        if tenant_id is None:
            return True

        owner = _original_tenant(instance)
        if owner is not None and owner != tenant_id:
            _log_violation(self.model.__name__, tenant_id, owner, operation, strict=True)
            if operation == "delete":
                return False
            raise CrossTenantViolationError(self.model.__name__, tenant_id, owner, operation)

        current_value = getattr(instance, TENANT_FIELD, None)
        if owner is not None and current_value != owner:
            _log_violation(self.model.__name__, tenant_id, current_value, operation, strict=self.strict)
            if self.strict:
                raise CrossTenantViolationError(self.model.__name__, tenant_id, current_value, operation)
            setattr(instance, TENANT_FIELD, owner)
        return True


# ──────────────────────────────────────────────────────────────
# ORM guard events
# ──────────────────────────────────────────────────────────────


def set_tenant_on_insert(mapper: Any, connection: Any, target: Any) -> None:  # noqa: ARG001
    """Fill or verify ``tenant_id`` right before an ORM INSERT."""
    context = get_tenant_context()
    supplied = getattr(target, TENANT_FIELD, None)

    if context is None:
        # system scope or raw sessions must name the owner explicitly
        if supplied:
            return
        raise NoTenantContextError(f"{target.__class__.__name__}.insert")

    if not supplied:
        setattr(target, TENANT_FIELD, context.tenant_id)
        return

    if supplied != context.tenant_id:
        _log_violation(target.__class__.__name__, context.tenant_id, supplied, "insert", strict=True)
        raise CrossTenantViolationError(
            target.__class__.__name__, context.tenant_id, supplied, "insert"
        )


def validate_tenant_on_update(mapper: Any, connection: Any, target: Any) -> None:  # noqa: ARG001
    """Reject ORM UPDATEs that move a row to another tenant or touch a foreign row."""
    model_name = target.__class__.__name__
    history = sa_inspect(target).attrs[TENANT_FIELD].history
    if history.deleted and history.deleted[0] != getattr(target, TENANT_FIELD):
        _log_violation(model_name, str(history.deleted[0]), getattr(target, TENANT_FIELD), "update", strict=True)
        raise CrossTenantViolationError(
            model_name, str(history.deleted[0]), getattr(target, TENANT_FIELD), "update"
        )

    context = get_tenant_context()
    owner = _original_tenant(target)
    if context is not None and owner is not None and owner != context.tenant_id:
        _log_violation(model_name, context.tenant_id, owner, "update", strict=True)
        raise CrossTenantViolationError(model_name, context.tenant_id, owner, "update")


def register_tenant_events(base_class: type) -> None:
    """Attach the ORM guard events to every mapped tenant-owned model.

    Safe to call more than once; listeners are only added once per model.

    Example:
        from storefront_events.core.database import Base
        from storefront_events.core.database.tenancy import register_tenant_events

        # After defining all models
        register_tenant_events(Base)
    """
    for mapper in base_class.registry.mappers:
        model_class = mapper.class_
        if not issubclass(model_class, TenantMixin):
            continue
        if not event.contains(model_class, "before_insert", set_tenant_on_insert):
            event.listen(model_class, "before_insert", set_tenant_on_insert)
        if not event.contains(model_class, "before_update", validate_tenant_on_update):
            event.listen(model_class, "before_update", validate_tenant_on_update)
        logger.debug("Registered tenant events for %s", model_class.__name__)


__all__ = [
    "TENANT_FIELD",
    "TenantMixin",
    "TenantScopedRepository",
    "register_tenant_events",
    "set_tenant_on_insert",
    "validate_tenant_on_update",
]
