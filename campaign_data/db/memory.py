"""
In-memory storage backend.

Rows live in per-entity dictionaries inside the process. The backend follows
the same semantics as the SQL backend for everything the repository relies on
(tenant scoping, operator meaning, NULL handling, ordering with NULLs last on
ascending and first on descending, window counts), so it can stand in for
PostgreSQL in development and tests. It does not enforce foreign keys or
unique constraints.
"""
from __future__ import annotations

import copy
import json
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional
from uuid import uuid4

from campaign_data.core.errors import StorageError, ValidationError
from campaign_data.db.registry import get_entity
from campaign_data.repositories.filters import FieldPath, Operator, Predicate
from campaign_data.repositories.query import Aggregate, AggregateFunc, Ordering, ScopedQuery
from campaign_data.schemas.common import QueryResult

logger = logging.getLogger(__name__)

Row = dict[str, Any]


def _resolve(row: Row, field: FieldPath) -> Any:
    value = row.get(field.column)
    for key in field.path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _json_text(value: Any) -> str:
    """Text form of a JSON value, as PostgreSQL's ->> operator renders it."""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, dict, list)):
        return json.dumps(value)
    return str(value)


def _compared_as_text(predicate: Predicate) -> bool:
    if not predicate.field.nested:
        return False
    if predicate.op in (Operator.EQ, Operator.NEQ, Operator.LIKE):
        return isinstance(predicate.value, str)
    if predicate.op is Operator.IN:
        return bool(predicate.value) and isinstance(predicate.value[0], str)
    return False


def _compare(value: Any, other: Any, op: Callable[[Any, Any], bool], field: FieldPath) -> bool:
    try:
        return op(value, other)
    except TypeError:
        raise ValidationError(f"Cannot compare '{field}' with {type(other).__name__}") from None


_COMPARATORS: dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.GT: lambda a, b: a > b,
    Operator.GTE: lambda a, b: a >= b,
    Operator.LT: lambda a, b: a < b,
    Operator.LTE: lambda a, b: a <= b,
}


def _matches(row: Row, predicate: Predicate) -> bool:
    value = _resolve(row, predicate.field)
    op = predicate.op
    if value is None:
        # NULL never satisfies a predicate, including <>.
        return False
    if _compared_as_text(predicate):
        value = _json_text(value)
    if op is Operator.EQ:
        return value == predicate.value
    if op is Operator.NEQ:
        return value != predicate.value
    if op is Operator.IN:
        return value in predicate.value
    if op is Operator.LIKE:
        return isinstance(value, str) and predicate.value.lower() in value.lower()
    if op is Operator.CONTAINS:
        return isinstance(value, (list, tuple)) and all(item in value for item in predicate.value)
    return _compare(value, predicate.value, _COMPARATORS[op], predicate.field)


def _matches_all(row: Row, predicates: Iterable[Predicate]) -> bool:
    return all(_matches(row, p) for p in predicates)


def _sort(rows: list[Row], orderings: Iterable[Ordering], key_of: Callable[[Row, FieldPath], Any]) -> list[Row]:
    # Stable sorts applied from the least to the most significant ordering.
    for ordering in reversed(tuple(orderings)):
        def sort_key(row: Row, _field: FieldPath = ordering.field) -> tuple:
            value = key_of(row, _field)
            return (value is None, value)

        try:
            rows.sort(key=sort_key, reverse=ordering.descending)
        except TypeError:
            raise ValidationError(f"Cannot order by '{ordering.field}': mixed value types") from None
    return rows


def _hashable(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_hashable(v) for v in value)
    if isinstance(value, dict):
        return tuple(sorted((k, _hashable(v)) for k, v in value.items()))
    return value


def _aggregate(rows: list[Row], agg: Aggregate) -> Any:
    if agg.func is AggregateFunc.COUNT and agg.field is None:
        return len(rows)
    values = [v for v in (_resolve(r, agg.field) for r in rows) if v is not None]
    if agg.func is AggregateFunc.COUNT:
        return len(values)
    if not values:
        return None
    if agg.func is AggregateFunc.SUM:
        return sum(values)
    if agg.func is AggregateFunc.MIN:
        return min(values)
    if agg.func is AggregateFunc.MAX:
        return max(values)
    return sum(values) / len(values)


class InMemoryBackend:
    """StorageBackend backed by process-local dictionaries."""

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, Row]] = defaultdict(dict)

    def _scoped_rows(self, entity: str, tenant_id: str) -> list[Row]:
        return [row for row in self._tables[entity].values() if row["tenant_id"] == tenant_id]

    async def select(self, query: ScopedQuery) -> QueryResult:
        get_entity(query.entity)
        rows = [
            row
            for row in self._scoped_rows(query.entity, query.tenant_id)
            if _matches_all(row, query.predicates)
            and all(any(_matches_all(row, spec) for spec in group) for group in query.alternatives)
        ]

        if query.is_grouped:
            groups: dict[tuple, list[Row]] = {}
            for row in rows:
                key = tuple(_hashable(_resolve(row, f)) for f in query.grouping)
                groups.setdefault(key, []).append(row)
            if not query.grouping:
                groups = {(): rows}
            output = []
            for key, members in groups.items():
                out = {str(f): _resolve(members[0], f) for f in query.grouping}
                for agg in query.aggregates:
                    out[agg.label] = _aggregate(members, agg)
                output.append(out)
            output = _sort(output, query.orderings, lambda r, f: r.get(str(f)))
        else:
            output = _sort(list(rows), query.orderings, _resolve)
            if query.selected:
                output = [{str(f): _resolve(row, f) for f in query.selected} for row in output]

        total = len(output)
        end = None if query.row_limit is None else query.row_offset + query.row_limit
        page = output[query.row_offset:end]
        logger.debug("memory select on %s matched %d row(s)", query.entity, total)
        return QueryResult(data=copy.deepcopy(page), count=total)

    async def get(self, entity: str, tenant_id: str, entity_id: str) -> Optional[Row]:
        row = self._tables[entity].get(entity_id)
        if row is None or row["tenant_id"] != tenant_id:
            return None
        return copy.deepcopy(row)

    async def insert(self, entity: str, tenant_id: str, values: Row) -> Row:
        definition = get_entity(entity)
        row: Row = {name: definition.python_default(name) for name in definition.writable_fields}
        row.update(copy.deepcopy(values))
        missing = sorted(name for name in definition.required_fields if row.get(name) is None)
        if missing:
            # Mirrors a NOT NULL violation reported by the database.
            raise StorageError(f"Could not create {entity}: null value in required column")
        now = datetime.now(timezone.utc)
        row.update(id=str(uuid4()), tenant_id=tenant_id, created_at=now, updated_at=now)
        self._tables[entity][row["id"]] = row
        return copy.deepcopy(row)

    async def update(self, entity: str, tenant_id: str, entity_id: str, values: Row) -> Optional[Row]:
        row = self._tables[entity].get(entity_id)
        if row is None or row["tenant_id"] != tenant_id:
            return None
        row.update(copy.deepcopy(values))
        row["updated_at"] = datetime.now(timezone.utc)
        return copy.deepcopy(row)

    async def delete(self, entity: str, tenant_id: str, entity_id: str) -> bool:
        row = self._tables[entity].get(entity_id)
        if row is None or row["tenant_id"] != tenant_id:
            return False
        del self._tables[entity][entity_id]
        return True
