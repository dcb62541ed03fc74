"""
Generic repository for registered entities.

Executes persistence operations for one descriptor against one session and
translates store failures into the error taxonomy (FK violations become
ENT011, everything else ENT005).

Usage:
    repo = EntityRepository(descriptor, db)
    course = repo.find_by_id(course_id, include=["chapters.sections"])
    page = repo.list_cursor(CursorParams.parse(cursor, 20), filters={"category": "math"})
"""

from __future__ import annotations

import uuid
from typing import Any, Mapping

from sqlalchemy import Text, func, select, type_coerce, update, delete as sql_delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from entity_shared.config.logging import get_logger
from entity_shared.infrastructure.deadline import check_deadline
from entity_shared.utils.exceptions import (
    EntityError,
    EntityNotFoundError,
    InvalidInputError,
    ValidationFailedError,
    wrap_database_error,
)
from entity_api.models.base import utcnow
from entity_api.services.entity.descriptor import EntityDescriptor
from entity_api.services.entity.filters import FilterManager
from entity_api.services.entity.pagination import (
    CursorPage,
    CursorParams,
    OffsetPage,
    OffsetParams,
    encode_cursor,
)
from entity_api.services.entity.preload import build_load_options

logger = get_logger(__name__)

# Columns a partial update may never touch
_IMMUTABLE_COLUMNS = frozenset({"id", "created_at", "owner_ids", "deleted_at"})


class EntityRepository:
    """Persistence operations for one entity type within one session."""

    def __init__(self, descriptor: EntityDescriptor, session: Session):
        self._descriptor = descriptor
        self._model = descriptor.model
        self._session = session
        self._filters = FilterManager(descriptor)

    @property
    def model(self) -> type:
        return self._model

    @property
    def session(self) -> Session:
        return self._session

    # -------------------------------------------------------------------------
    # Query building
    # -------------------------------------------------------------------------

    def _base_query(self) -> Select:
        # Rows already in the identity map are refreshed from this result
        return select(self._model).execution_options(populate_existing=True)

    def _apply_active_filter(self, query: Select, include_deleted: bool) -> Select:
        """Hide soft-deleted rows."""
        if not include_deleted:
            query = query.where(self._model.deleted_at.is_(None))
        return query

    def _apply_options(self, query: Select, include: list[str] | None) -> Select:
        options = build_load_options(self._descriptor, include)
        if options:
            query = query.options(*options)
        return query

    def _filtered_query(self, filters: Mapping[str, Any] | None) -> Select:
        query = self._apply_active_filter(self._base_query(), include_deleted=False)
        return self._filters.apply(query, filters)

    def _count(self, query: Select) -> int:
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        return self._session.scalar(count_query) or 0

    def _run(self, operation: str, fn, *args, **kwargs):
        """Execute a store call, honouring the deadline and mapping errors."""
        check_deadline(operation)
        try:
            return fn(*args, **kwargs)
        except EntityError:
            raise
        except SQLAlchemyError as e:
            logger.error(
                "Store operation failed",
                entity=self._descriptor.entity_name,
                operation=operation,
                error=str(e),
            )
            raise wrap_database_error(e, operation) from e

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def find_by_id(
        self,
        entity_id: uuid.UUID,
        *,
        include: list[str] | None = None,
        include_deleted: bool = False,
    ) -> Any:
        """
        Load one entity with the requested relations.

        Raises:
            EntityNotFoundError: no live row with that id.
            InvalidInputError: include names an unknown relation.
        """
        query = self._base_query().where(self._model.id == entity_id)
        query = self._apply_active_filter(query, include_deleted)
        query = self._apply_options(query, include)

        entity = self._run("read entity", lambda: self._session.scalar(query))
        if entity is None:
            raise EntityNotFoundError(self._descriptor.entity_name, entity_id)
        return entity

    def list_offset(
        self,
        params: OffsetParams,
        *,
        filters: Mapping[str, Any] | None = None,
        include: list[str] | None = None,
    ) -> OffsetPage:
        """Page ``params.page`` ordered by id; ``total`` is the filtered count."""
        query = self._filtered_query(filters)
        total = self._run("count entities", self._count, query)

        page_query = self._apply_options(query, include)
        page_query = page_query.order_by(self._model.id).offset(params.offset).limit(params.page_size)
        items = self._run("list entities", lambda: list(self._session.scalars(page_query).all()))

        return OffsetPage(items=items, total=total, page=params.page, page_size=params.page_size)

    def list_cursor(
        self,
        params: CursorParams,
        *,
        filters: Mapping[str, Any] | None = None,
        include: list[str] | None = None,
        with_total: bool = True,
    ) -> CursorPage:
        """
        Keyset page: up to ``limit`` rows with id greater than the cursor.

        Fetches ``limit + 1`` rows to learn whether another page exists.
        """
        query = self._filtered_query(filters)
        total = self._run("count entities", self._count, query) if with_total else None

        if params.after_id is not None:
            query = query.where(self._model.id > params.after_id)
        query = self._apply_options(query, include)
        query = query.order_by(self._model.id).limit(params.limit + 1)

        rows = self._run("list entities", lambda: list(self._session.scalars(query).all()))
        has_more = len(rows) > params.limit
        items = rows[: params.limit]
        next_cursor = encode_cursor(items[-1].id) if has_more and items else ""

        return CursorPage(
            items=items,
            next_cursor=next_cursor,
            has_more=has_more,
            limit=params.limit,
            total=total,
        )

    # -------------------------------------------------------------------------
    # Writes (caller owns the transaction)
    # -------------------------------------------------------------------------

    def create(self, entity: Any) -> Any:
        """Insert and flush so the id and defaults are assigned."""

        def _insert():
            self._session.add(entity)
            self._session.flush()
            return entity

        return self._run("create entity", _insert)

    def update(self, entity: Any, partial: dict[str, Any]) -> Any:
        """
        Apply a partial update map and reload the row.

        JSON-column values must already be encoded text (see
        ``preprocess_json_fields``); they are written without a second encoding.

        Raises:
            InvalidInputError: a key is not a column, or is immutable.
            ValidationFailedError: null for a column that cannot be null.
        """
        column_attrs = self._model.__mapper__.column_attrs
        for key, value in partial.items():
            if key not in column_attrs:
                raise InvalidInputError(key, value, "not a column of " + self._descriptor.entity_name)
            if key in _IMMUTABLE_COLUMNS:
                raise InvalidInputError(key, value, "field cannot be updated")
            if value is None and not column_attrs[key].columns[0].nullable:
                raise ValidationFailedError(key, "field cannot be null")

        json_columns = set(self._descriptor.json_columns)
        values = {
            key: type_coerce(value, Text) if key in json_columns and value is not None else value
            for key, value in partial.items()
        }

        def _update():
            if partial:
                stmt = (
                    update(self._model)
                    .where(self._model.id == entity.id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                self._session.execute(stmt)
            self._session.flush()
            self._session.refresh(entity)
            return entity

        return self._run("update entity", _update)

    def soft_delete(self, entity: Any) -> None:
        """Stamp ``deleted_at``; the row stays."""

        def _soft_delete():
            self._session.execute(
                update(self._model)
                .where(self._model.id == entity.id)
                .values(deleted_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            self._session.flush()
            self._session.refresh(entity)

        self._run("soft delete entity", _soft_delete)

    def hard_delete(self, entity: Any) -> None:
        """
        Remove the row.

        Join rows go with it (ON DELETE CASCADE); a referencing FK with
        RESTRICT fails as ConstraintViolationError.
        """

        def _hard_delete():
            self._session.flush()
            self._session.execute(
                sql_delete(self._model)
                .where(self._model.id == entity.id)
                .execution_options(synchronize_session=False)
            )
            if entity in self._session:
                self._session.expunge(entity)

        self._run("delete entity", _hard_delete)

    def delete(self, entity: Any, scoped: bool) -> None:
        if scoped:
            self.soft_delete(entity)
        else:
            self.hard_delete(entity)
