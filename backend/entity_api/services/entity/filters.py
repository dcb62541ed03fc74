"""
Query-parameter filter engine.

Each remaining query parameter is offered to the strategies in order; the
first one that matches compiles it into a WHERE clause:

1. MembershipFilter     user_member_id (server-set)  EXISTS over the member table
2. DirectColumnFilter   ?name=X, ?category=a,b       column equality / IN
3. ForeignKeyFilter     ?parentId=<uuid>             FK column equality / IN
4. ManyToManyFilter     ?chapterIds=<uuid>,<uuid>    EXISTS over the join table
5. RelationshipPathFilter  ?courseId=<uuid>          registered nested EXISTS

Parameters no strategy claims are ignored.
"""

from __future__ import annotations

import re
import uuid
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from sqlalchemy import and_, inspect as sa_inspect, literal, select
from sqlalchemy.sql import Select

from entity_shared.config.constants import QueryParams
from entity_shared.config.logging import get_logger
from entity_shared.utils.exceptions import InvalidInputError
from entity_api.models.base import JSONText
from entity_api.services.entity.naming import camel_to_snake, pluralize

if TYPE_CHECKING:
    from entity_api.services.entity.descriptor import EntityDescriptor, RelationshipFilter

logger = get_logger(__name__)

_ID_SUFFIX = re.compile(r"^(?P<base>.+?)(?P<suffix>Ids|IDs|Id|ID)$")
_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


# =============================================================================
# Value helpers
# =============================================================================


def split_values(raw: str | Iterable[str]) -> list[str]:
    """
    Flatten a parameter value into a list.

    Comma-separated values and repeated parameters both become lists;
    whitespace is trimmed and empty entries dropped.
    """
    if isinstance(raw, str):
        raw = [raw]
    values: list[str] = []
    for item in raw:
        values.extend(part.strip() for part in str(item).split(",") if part.strip())
    return values


def coerce_value(column, key: str, value: str) -> Any:
    """
    Convert a query-string value to the column's Python type.

    Raises:
        InvalidInputError: the value cannot be converted.
    """
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value

    try:
        if python_type is uuid.UUID:
            return uuid.UUID(value)
        if python_type is bool:
            lowered = value.lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ValueError(f"not a boolean: {value}")
        if python_type is int:
            return int(value)
        if python_type is float:
            return float(value)
        if python_type is Decimal:
            return Decimal(value)
        if python_type is datetime:
            return datetime.fromisoformat(value)
        if python_type is date:
            return date.fromisoformat(value)
    except (ValueError, TypeError, InvalidOperation) as e:
        raise InvalidInputError(key, value, f"expected {python_type.__name__}: {e}")
    return value


def _equality(column, key: str, values: list[str]):
    coerced = [coerce_value(column, key, v) for v in values]
    if len(coerced) == 1:
        return column == coerced[0]
    return column.in_(coerced)


# =============================================================================
# Strategies
# =============================================================================


class FilterStrategy:
    """A way of turning one query parameter into a WHERE clause."""

    name = "base"

    def __init__(self, descriptor: "EntityDescriptor"):
        self.descriptor = descriptor
        self.model = descriptor.model
        self.mapper = sa_inspect(descriptor.model)

    def matches(self, key: str) -> bool:
        raise NotImplementedError

    def apply(self, query: Select, key: str, values: list[str]) -> Select:
        raise NotImplementedError


class MembershipFilter(FilterStrategy):
    """
    ``user_member_id`` as an EXISTS over the descriptor's member table.

    Only rows whose member table holds an active row for the subject
    match. When the entity is itself the member table, rows match through
    any active membership of the same parent.
    """

    name = "membership"

    def matches(self, key: str) -> bool:
        return key == QueryParams.MEMBER and self.descriptor.membership_config is not None

    def apply(self, query: Select, key: str, values: list[str]) -> Select:
        config = self.descriptor.membership_config
        members = self.model.metadata.tables[config.member_table].alias("membership_check")

        if config.member_table == self.descriptor.table_name:
            link = members.c[config.entity_id_column] == getattr(self.model, config.entity_id_column)
        else:
            link = members.c[config.entity_id_column] == self.model.id

        subquery = (
            select(literal(1))
            .select_from(members)
            .where(
                link,
                members.c[config.user_id_column].in_(values),
                members.c[config.is_active_column].is_(True),
            )
            .exists()
        )
        return query.where(subquery)


class DirectColumnFilter(FilterStrategy):
    """Equality on a persistent column; keys with an Id suffix are left to later strategies."""

    name = "direct"

    def _column_key(self, key: str) -> str | None:
        if _ID_SUFFIX.match(key):
            return None
        columns = {attr.key: attr for attr in self.mapper.column_attrs}
        for candidate in (key, camel_to_snake(key)):
            attr = columns.get(candidate)
            if attr is not None and not isinstance(attr.columns[0].type, JSONText):
                return candidate
        return None

    def matches(self, key: str) -> bool:
        return self._column_key(key) is not None

    def apply(self, query: Select, key: str, values: list[str]) -> Select:
        column = getattr(self.model, self._column_key(key))
        return query.where(_equality(column, key, values))


class ForeignKeyFilter(FilterStrategy):
    """``<child>Id`` / ``<child>ID`` against the ``<child>_id`` foreign key column."""

    name = "foreign_key"

    def _column_key(self, key: str) -> str | None:
        match = _ID_SUFFIX.match(key)
        if match is None or match.group("suffix") not in ("Id", "ID"):
            return None
        candidate = f"{camel_to_snake(match.group('base'))}_id"
        attr = {a.key: a for a in self.mapper.column_attrs}.get(candidate)
        if attr is None or not attr.columns[0].foreign_keys:
            return None
        return candidate

    def matches(self, key: str) -> bool:
        return self._column_key(key) is not None

    def apply(self, query: Select, key: str, values: list[str]) -> Select:
        column = getattr(self.model, self._column_key(key))
        return query.where(_equality(column, key, values))


class ManyToManyFilter(FilterStrategy):
    """``<relation>Ids`` / ``<relation>IDs`` as an EXISTS over the join table."""

    name = "many_to_many"

    def _relationship(self, key: str):
        match = _ID_SUFFIX.match(key)
        if match is None or match.group("suffix") not in ("Ids", "IDs"):
            return None
        base = camel_to_snake(match.group("base"))
        candidates = {base, pluralize(base)}
        for rel in self.mapper.relationships:
            if rel.secondary is not None and rel.key in candidates:
                return rel
        return None

    def matches(self, key: str) -> bool:
        return self._relationship(key) is not None

    def apply(self, query: Select, key: str, values: list[str]) -> Select:
        rel = self._relationship(key)
        secondary = rel.secondary
        (_, local_fk), = rel.synchronize_pairs
        (remote_pk, remote_fk), = rel.secondary_synchronize_pairs
        ids = [coerce_value(remote_pk, key, v) for v in values]

        subquery = (
            select(literal(1))
            .select_from(secondary)
            .where(
                secondary.c[local_fk.name] == self.model.id,
                secondary.c[remote_fk.name].in_(ids),
            )
            .exists()
        )
        return query.where(subquery)


class RelationshipPathFilter(FilterStrategy):
    """A filter declared on the descriptor, compiled to nested EXISTS clauses."""

    name = "relationship_path"

    def __init__(self, descriptor: "EntityDescriptor"):
        super().__init__(descriptor)
        self._filters = {f.filter_name: f for f in descriptor.relationship_filters}

    def matches(self, key: str) -> bool:
        return key in self._filters

    def apply(self, query: Select, key: str, values: list[str]) -> Select:
        return query.where(self.build_clause(self._filters[key], values))

    def build_clause(self, rel_filter: "RelationshipFilter", values: list[str]):
        """
        Build ``EXISTS (SELECT 1 FROM step0 WHERE step0.src = <table>.id
        AND EXISTS (SELECT 1 FROM step1 WHERE step1.src = step0.tgt
        AND ... AND stepN.tgt IN (:values)))``.
        """
        tables = self.model.metadata.tables
        path = rel_filter.path
        aliases = [
            tables[step.join_table].alias(f"{rel_filter.filter_name}_{index}")
            for index, step in enumerate(path)
        ]

        last_target = aliases[-1].c[path[-1].target_column]
        terminal = _equality(last_target, rel_filter.filter_name, values)

        inner = None
        for index in reversed(range(len(path))):
            step = path[index]
            alias = aliases[index]
            if index == 0:
                link = alias.c[step.source_column] == self.model.id
            else:
                link = alias.c[step.source_column] == aliases[index - 1].c[path[index - 1].target_column]

            conditions = [link]
            if index == len(path) - 1:
                conditions.append(terminal)
            if inner is not None:
                conditions.append(inner)

            inner = select(literal(1)).select_from(alias).where(and_(*conditions)).exists()

        return inner


# =============================================================================
# Manager
# =============================================================================


class FilterManager:
    """
    Applies query-parameter filters to a select.

    Usage:
        manager = FilterManager(descriptor)
        query = manager.apply(select(Course), {"category": ["math"], "chapterIds": ["..."]})
    """

    def __init__(self, descriptor: "EntityDescriptor"):
        self.descriptor = descriptor
        self.strategies: list[FilterStrategy] = [
            MembershipFilter(descriptor),
            DirectColumnFilter(descriptor),
            ForeignKeyFilter(descriptor),
            ManyToManyFilter(descriptor),
            RelationshipPathFilter(descriptor),
        ]

    def strategy_for(self, key: str) -> FilterStrategy | None:
        for strategy in self.strategies:
            if strategy.matches(key):
                return strategy
        return None

    def apply(self, query: Select, filters: Mapping[str, Any] | None) -> Select:
        if not filters:
            return query

        for key, raw in filters.items():
            if key in QueryParams.RESERVED:
                continue
            strategy = self.strategy_for(key)
            if strategy is None:
                logger.debug("Ignoring unknown filter", entity=self.descriptor.entity_name, key=key)
                continue
            values = split_values(raw)
            if not values:
                continue
            query = strategy.apply(query, key, values)

        return query
