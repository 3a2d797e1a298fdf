"""
PostgreSQL storage backend built on SQLAlchemy's asyncio extension.

Each operation opens its own AsyncSession from the session maker and closes
it before returning; mutations run inside `session.begin()` so they commit on
success and roll back on error. Driver, transport and timeout failures are
logged and re-raised as StorageError with the original exception attached.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Iterator, Optional
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Numeric,
    and_,
    cast,
    delete,
    false,
    func,
    insert,
    or_,
    select,
    true,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from campaign_data.core.errors import StorageError
from campaign_data.db.base import TENANT_COLUMN
from campaign_data.db.registry import EntityDefinition, get_entity
from campaign_data.repositories.filters import FieldPath, Operator, Predicate
from campaign_data.repositories.query import Aggregate, AggregateFunc, ScopedQuery
from campaign_data.schemas.common import QueryResult

logger = logging.getLogger(__name__)

Row = dict[str, Any]

_TOTAL = "__total"
_AGGREGATES = {
    AggregateFunc.COUNT: func.count,
    AggregateFunc.SUM: func.sum,
    AggregateFunc.MIN: func.min,
    AggregateFunc.MAX: func.max,
    AggregateFunc.AVG: func.avg,
}


def _valid_id(entity_id: Any) -> bool:
    try:
        UUID(str(entity_id))
    except ValueError:
        return False
    return True


def _plain(value: Any) -> Any:
    # AVG/SUM over numeric columns come back as Decimal.
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def like_pattern(value: str) -> str:
    """Substring pattern for ILIKE with the wildcard characters in `value` escaped."""
    escaped = value.replace("/", "//").replace("%", "/%").replace("_", "/_")
    return f"%{escaped}%"


@contextmanager
def _storage_errors(action: str, entity: str) -> Iterator[None]:
    try:
        yield
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
        logger.exception("Storage failure while trying to %s %s", action, entity)
        raise StorageError(f"Could not {action} {entity}", cause=exc) from exc


def _json_target(col: ColumnElement, field: FieldPath) -> ColumnElement:
    """Element at a nested path: `col -> key` for one key, `col #> path` for deeper ones."""
    return col[field.path[0] if len(field.path) == 1 else field.path]


def field_expression(definition: EntityDefinition, field: FieldPath, sample: Any = None) -> ColumnElement:
    """
    Column expression for `field`. Nested JSON paths are extracted as text and
    cast to NUMERIC or BOOLEAN when compared against a value of that kind.
    """
    col = definition.table.c[field.column]
    if not field.nested:
        return col
    expr = _json_target(col, field).astext
    if isinstance(sample, bool):
        return cast(expr, Boolean)
    if isinstance(sample, (int, float, Decimal)):
        return cast(expr, Numeric)
    return expr


def predicate_clause(definition: EntityDefinition, predicate: Predicate) -> ColumnElement:
    """Translate one parsed predicate into a SQL boolean expression."""
    field, op, value = predicate.field, predicate.op, predicate.value

    if op is Operator.CONTAINS:
        col = definition.table.c[field.column]
        target = col if not field.nested else _json_target(col, field)
        return target.contains(list(value))

    if op is Operator.IN:
        if not value:
            return false()
        return field_expression(definition, field, value[0]).in_(value)

    if op is Operator.LIKE:
        return field_expression(definition, field).ilike(like_pattern(value), escape="/")

    expr = field_expression(definition, field, value)
    if op is Operator.EQ:
        return expr == value
    if op is Operator.NEQ:
        return expr != value
    if op is Operator.GT:
        return expr > value
    if op is Operator.GTE:
        return expr >= value
    if op is Operator.LT:
        return expr < value
    return expr <= value


def _aggregate_expression(definition: EntityDefinition, agg: Aggregate) -> ColumnElement:
    if agg.field is None:
        return func.count()
    sample = 0 if agg.func in (AggregateFunc.SUM, AggregateFunc.AVG) else None
    return _AGGREGATES[agg.func](field_expression(definition, agg.field, sample))


def _conjunction(definition: EntityDefinition, predicates: tuple[Predicate, ...]) -> ColumnElement:
    if not predicates:
        return true()
    return and_(*(predicate_clause(definition, p) for p in predicates))


def where_clause(definition: EntityDefinition, query: ScopedQuery) -> ColumnElement:
    """Tenant predicate AND-ed with the query's predicates and OR-groups."""
    clauses = [definition.table.c[TENANT_COLUMN] == query.tenant_id]
    clauses.extend(predicate_clause(definition, p) for p in query.predicates)
    for group in query.alternatives:
        clauses.append(
            or_(*(_conjunction(definition, spec.predicates) for spec in group))
        )
    return and_(*clauses)


def build_select(query: ScopedQuery):
    """
    Build the SELECT for `query`. Returns (statement, output names); the
    statement carries a window count labelled `__total`.
    """
    definition = get_entity(query.entity)
    table = definition.table
    where = where_clause(definition, query)

    if query.is_grouped:
        names = query.output_names()
        exprs = [field_expression(definition, f) for f in query.grouping]
        exprs += [_aggregate_expression(definition, a) for a in query.aggregates]
        labelled = {name: expr.label(f"c{i}") for i, (name, expr) in enumerate(zip(names, exprs))}
        stmt = select(*labelled.values(), func.count().over().label(_TOTAL)).where(where)
        if query.grouping:
            stmt = stmt.group_by(*(labelled[str(f)] for f in query.grouping))
        for ordering in query.orderings:
            target = labelled[str(ordering.field)]
            stmt = stmt.order_by(target.desc() if ordering.descending else target.asc())
    else:
        if query.selected:
            names = tuple(str(f) for f in query.selected)
            columns = [field_expression(definition, f).label(f"c{i}") for i, f in enumerate(query.selected)]
        else:
            names = tuple(c.name for c in table.columns)
            columns = [c.label(f"c{i}") for i, c in enumerate(table.columns)]
        stmt = select(*columns, func.count().over().label(_TOTAL)).where(where)
        for ordering in query.orderings:
            expr = field_expression(definition, ordering.field)
            stmt = stmt.order_by(expr.desc() if ordering.descending else expr.asc())

    if query.row_offset:
        stmt = stmt.offset(query.row_offset)
    if query.row_limit is not None:
        stmt = stmt.limit(query.row_limit)
    return stmt, names


def build_count(query: ScopedQuery):
    """COUNT of matching rows (or groups), ignoring limit and offset."""
    unpaged = ScopedQuery(
        entity=query.entity,
        tenant_id=query.tenant_id,
        predicates=query.predicates,
        alternatives=query.alternatives,
        selected=query.selected,
        grouping=query.grouping,
        aggregates=query.aggregates,
    )
    stmt, _ = build_select(unpaged)
    return select(func.count()).select_from(stmt.subquery())


class SqlAlchemyBackend:
    """StorageBackend executing against PostgreSQL through an async session maker."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def select(self, query: ScopedQuery) -> QueryResult:
        stmt, names = build_select(query)
        with _storage_errors("read", query.entity):
            async with self._session_maker() as session:
                rows = (await session.execute(stmt)).mappings().all()
                if rows:
                    total = rows[0][_TOTAL]
                else:
                    # Window count is unavailable when the page is past the end.
                    total = 0 if not query.row_offset else (await session.execute(build_count(query))).scalar_one()
        data = [{name: _plain(row[f"c{i}"]) for i, name in enumerate(names)} for row in rows]
        return QueryResult(data=data, count=int(total))

    async def get(self, entity: str, tenant_id: str, entity_id: str) -> Optional[Row]:
        if not _valid_id(entity_id):
            return None
        table = get_entity(entity).table
        stmt = select(table).where(table.c.id == str(entity_id), table.c[TENANT_COLUMN] == tenant_id)
        with _storage_errors("read", entity):
            async with self._session_maker() as session:
                row = (await session.execute(stmt)).mappings().one_or_none()
        return dict(row) if row is not None else None

    async def insert(self, entity: str, tenant_id: str, values: Row) -> Row:
        table = get_entity(entity).table
        stmt = insert(table).values(**values, **{TENANT_COLUMN: tenant_id}).returning(*table.c)
        with _storage_errors("create", entity):
            async with self._session_maker() as session:
                async with session.begin():
                    row = (await session.execute(stmt)).mappings().one()
        return dict(row)

    async def update(self, entity: str, tenant_id: str, entity_id: str, values: Row) -> Optional[Row]:
        if not _valid_id(entity_id):
            return None
        table = get_entity(entity).table
        stmt = (
            update(table)
            .where(table.c.id == str(entity_id), table.c[TENANT_COLUMN] == tenant_id)
            .values(**values, updated_at=func.now())
            .returning(*table.c)
        )
        with _storage_errors("update", entity):
            async with self._session_maker() as session:
                async with session.begin():
                    row = (await session.execute(stmt)).mappings().one_or_none()
        return dict(row) if row is not None else None

    async def delete(self, entity: str, tenant_id: str, entity_id: str) -> bool:
        if not _valid_id(entity_id):
            return False
        table = get_entity(entity).table
        stmt = delete(table).where(table.c.id == str(entity_id), table.c[TENANT_COLUMN] == tenant_id)
        with _storage_errors("delete", entity):
            async with self._session_maker() as session:
                async with session.begin():
                    result = await session.execute(stmt)
        return result.rowcount > 0
