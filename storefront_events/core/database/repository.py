"""Minimal generic repository for SQLAlchemy models.

Provides basic CRUD operations with explicit session passing. Every statement
the repository builds goes through ``_scope_criteria``; subclasses override
that hook (and ``_prepare_new`` / ``_prepare_values``) to enforce row-level
rules such as tenant isolation.

Example:
    class SubscriptionRepository(BaseRepository[WebhookSubscription]):
        async def find_by_url(self, session: AsyncSession, url: str) -> WebhookSubscription | None:
            return await self.get_by(session, WebhookSubscription.url, url)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import Select, func, insert, select
from sqlalchemy import delete as sql_delete
from sqlalchemy import inspect as sa_inspect
from sqlalchemy import update as sql_update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from storefront_events.core.database.exceptions import NotFoundError
from storefront_events.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute
    from sqlalchemy.sql import ColumnElement


@dataclass(slots=True, frozen=True)
class SearchResult[T]:
    """Paginated search result container.

    Attributes:
        items: List of items for current page
        total: Total count across all pages
        limit: Page size
        offset: Current offset
    """

    items: Sequence[T]
    total: int
    limit: int
    offset: int

    @property
    def has_next(self) -> bool:
        """Whether there are more pages after current."""
        return self.offset + len(self.items) < self.total


class BaseRepository[T]:
    """Minimal generic repository for CRUD operations.

    Provides:
        - get(session, id) -> T | None
        - get_or_raise(session, id) -> T (raises NotFoundError)
        - get_by(session, attr, value) -> T | None
        - list(session, *criteria, limit, offset) -> Sequence[T]
        - search(session, statement, limit, offset) -> SearchResult[T]
        - count(session, *criteria) -> int
        - create(session, instance) -> T
        - create_many(session, instances) -> Sequence[T]
        - update(session, instance) -> T
        - update_where(session, *criteria, values=...) -> int
        - delete(session, instance) -> bool
        - delete_where(session, *criteria) -> int
        - insert_ignoring_conflicts(session, values, conflict_columns) -> id | None

    Session is always explicit. The repository flushes but never commits;
    transaction boundaries belong to the caller.
    """

    __slots__ = ("model", "_logger", "_lazy")

    def __init__(self, model: type[T]) -> None:
        self.model = model
        # Standard logger for INFO/WARNING/ERROR
        self._logger = logging.getLogger(f"repository.{model.__name__}")
        # Lazy logger for DEBUG (zero overhead when DEBUG disabled)
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    # ──────────────────────────────────────────────────────────────
    # Hooks
    # ──────────────────────────────────────────────────────────────

    def _scope_criteria(self, operation: str) -> list[ColumnElement[bool]]:
        """Extra WHERE criteria ANDed into every statement this repository runs."""
        _ = operation
        return []

    def _prepare_new(self, instance: T, operation: str) -> None:
        """Adjust an instance before it is added to the session."""

    def _prepare_values(self, values: dict[str, Any], operation: str) -> dict[str, Any]:
        """Adjust the column values of a bulk UPDATE or Core INSERT."""
        _ = operation
        return dict(values)

    def _check_owned(self, instance: T, operation: str) -> bool:
        """Whether this repository may modify an already loaded instance."""
        _ = instance, operation
        return True

    def _select(self, operation: str = "select") -> Select[tuple[T]]:
        return select(self.model).where(*self._scope_criteria(operation))

    def _pk_attr(self) -> InstrumentedAttribute[Any]:
        return sa_inspect(self.model).primary_key[0]

    # ──────────────────────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────────────────────

    async def get(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
        *,
        options: Iterable[Any] | None = None,
    ) -> T | None:
        """Get entity by primary key.

        Always issues a SELECT (never the identity map) so scope criteria apply.
        """
        stmt = self._select("get").where(self._pk_attr() == id)
        if options:
            stmt = stmt.options(*options)
        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self._lazy.debug(
            lambda: f"db.get: {self.model.__name__}({id}) -> {'found' if instance else 'not found'}"
        )
        return instance

    async def get_or_raise(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
        *,
        options: Iterable[Any] | None = None,
    ) -> T:
        """Get entity by primary key or raise NotFoundError."""
        instance = await self.get(session, id, options=options)
        if instance is None:
            self._logger.info(
                "Entity not found",
                extra={
                    "entity": self.model.__name__,
                    "id": str(id),
                    "operation": "db.get_or_raise",
                },
            )
            raise NotFoundError(self.model.__name__, {"id": id})
        return instance

    async def get_by(
        self,
        session: AsyncSession,
        attr: InstrumentedAttribute[Any],
        value: Any,
    ) -> T | None:
        """Get the first entity whose ``attr`` equals ``value``."""
        stmt = self._select("get_by").where(attr == value).limit(1)
        result = await session.execute(stmt)
        instance = result.scalars().first()

        self._lazy.debug(
            lambda: f"db.get_by: {self.model.__name__}.{attr.key}={value!r} -> {'found' if instance else 'not found'}"
        )
        return instance

    async def list(
        self,
        session: AsyncSession,
        *criteria: ColumnElement[bool],
        limit: int = 100,
        offset: int = 0,
        order_by: Iterable[Any] | None = None,
    ) -> Sequence[T]:
        """List entities matching ``criteria`` with pagination."""
        stmt = self._select("list").where(*criteria)
        if order_by is not None:
            stmt = stmt.order_by(*order_by)
        result = await session.execute(stmt.limit(limit).offset(offset))
        items = result.scalars().all()

        self._lazy.debug(
            lambda: f"db.list: {self.model.__name__}(limit={limit}, offset={offset}) -> {len(items)} items"
        )
        return items

    async def search(
        self,
        session: AsyncSession,
        statement: Select[tuple[T]] | None = None,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> SearchResult[T]:
        """Execute paginated search with total count.

        A caller-built ``statement`` is still narrowed by the scope criteria.
        """
        if statement is None:
            statement = self._select("search")
        else:
            statement = statement.where(*self._scope_criteria("search"))

        count_stmt = select(func.count()).select_from(statement.order_by(None).subquery())
        total = (await session.execute(count_stmt)).scalar_one()

        result = await session.execute(statement.limit(limit).offset(offset))
        items = result.scalars().all()

        self._lazy.debug(
            lambda: f"db.search: {self.model.__name__}(limit={limit}, offset={offset}) -> {len(items)}/{total} items"
        )
        return SearchResult(items=items, total=total, limit=limit, offset=offset)

    async def count(self, session: AsyncSession, *criteria: ColumnElement[bool]) -> int:
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(*self._scope_criteria("count"), *criteria)
        )
        return (await session.execute(stmt)).scalar_one()

    # ──────────────────────────────────────────────────────────────
    # Writes
    # ──────────────────────────────────────────────────────────────

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Persist a new entity.

        Adds to session, flushes to get generated values (like id),
        and refreshes to ensure instance is up-to-date.
        """
        self._prepare_new(instance, "create")
        session.add(instance)
        await session.flush()
        await session.refresh(instance)

        entity_id = getattr(instance, "id", None)
        self._lazy.debug(lambda: f"db.create: {self.model.__name__}(id={entity_id})")
        return instance

    async def create_many(self, session: AsyncSession, instances: Iterable[T]) -> Sequence[T]:
        instances_list = list(instances)
        for instance in instances_list:
            self._prepare_new(instance, "create_many")
        session.add_all(instances_list)
        await session.flush()
        for instance in instances_list:
            await session.refresh(instance)

        self._lazy.debug(
            lambda: f"db.create_many: {self.model.__name__} -> {len(instances_list)} created"
        )
        return instances_list

    async def update(self, session: AsyncSession, instance: T) -> T:
        """Flush pending changes of a loaded entity and refresh it."""
        self._check_owned(instance, "update")
        session.add(instance)
        await session.flush()
        await session.refresh(instance)

        self._lazy.debug(lambda: f"db.update: {self.model.__name__}(id={getattr(instance, 'id', None)})")
        return instance

    async def update_where(
        self,
        session: AsyncSession,
        *criteria: ColumnElement[bool],
        values: dict[str, Any],
    ) -> int:
        """Bulk UPDATE rows matching ``criteria``.

        Returns:
            Number of rows affected
        """
        values = self._prepare_values(values, "update_where")
        if not values:
            return 0

        stmt = (
            sql_update(self.model)
            .where(*self._scope_criteria("update_where"), *criteria)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        rowcount = result.rowcount

        self._lazy.debug(
            lambda: f"db.update_where: {self.model.__name__}({sorted(values)}) -> {rowcount} rows"
        )
        return rowcount

    async def delete(self, session: AsyncSession, instance: T) -> bool:
        """Delete a loaded entity.

        Returns:
            True when the entity was deleted, False when this repository may
            not touch it
        """
        if not self._check_owned(instance, "delete"):
            return False

        entity_id = getattr(instance, "id", None)
        await session.delete(instance)
        await session.flush()

        self._logger.info(
            "Entity deleted",
            extra={"entity": self.model.__name__, "id": str(entity_id), "operation": "db.delete"},
        )
        return True

    async def delete_where(self, session: AsyncSession, *criteria: ColumnElement[bool]) -> int:
        """Bulk DELETE rows matching ``criteria``.

        Returns:
            Number of rows deleted
        """
        stmt = (
            sql_delete(self.model)
            .where(*self._scope_criteria("delete_where"), *criteria)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        rowcount = result.rowcount

        self._logger.info(
            "Entities deleted",
            extra={"entity": self.model.__name__, "count": rowcount, "operation": "db.delete_where"},
        )
        return rowcount

    async def insert_ignoring_conflicts(
        self,
        session: AsyncSession,
        values: dict[str, Any],
        *,
        conflict_columns: Sequence[str],
    ) -> Any | None:
        """INSERT a row unless it collides with a unique constraint.

        PostgreSQL and SQLite use ``ON CONFLICT (...) DO NOTHING`` so concurrent
        writers never raise. Other dialects fall back to a SAVEPOINT.

        Returns:
            Primary key of the inserted row, or None when it already existed
        """
        values = self._prepare_values(values, "insert")
        pk = self._pk_attr()
        dialect = session.get_bind().dialect.name

        if dialect in ("postgresql", "sqlite"):
            dialect_insert = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = (
                dialect_insert(self.model)
                .values(**values)
                .on_conflict_do_nothing(index_elements=list(conflict_columns))
                .returning(pk)
            )
            inserted_id = (await session.execute(stmt)).scalar_one_or_none()
        else:
            try:
                async with session.begin_nested():
                    result = await session.execute(insert(self.model).values(**values).returning(pk))
                    inserted_id = result.scalar_one()
            except IntegrityError:
                inserted_id = None

        self._lazy.debug(
            lambda: f"db.insert_ignoring_conflicts: {self.model.__name__} -> {'inserted' if inserted_id else 'conflict'}"
        )
        return inserted_id


__all__ = ["BaseRepository", "SearchResult"]
