"""
Pre-scoped query handle for aggregate and OR-combined reads.

`Repository.custom_query` hands builders a ScopedQuery that already names the
entity and tenant. Builders can narrow, group, aggregate, order and slice it,
but there is no method that changes the tenant or reaches another table; the
repository also refuses to execute a handle whose entity or tenant no longer
matches its own.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Iterator, Mapping, Optional, Union

from campaign_data.core.errors import ValidationError
from campaign_data.repositories.filters import FieldPath, FilterSpec, Predicate

FilterInput = Union[FilterSpec, Mapping[str, Any], None]


class AggregateFunc(str, Enum):
    COUNT = "count"
    SUM = "sum"
    MIN = "min"
    MAX = "max"
    AVG = "avg"


@dataclass(frozen=True)
class Aggregate:
    """Aggregate over a field (or over rows, for count without a field)."""

    func: AggregateFunc
    field: Optional[FieldPath]
    label: str


def _aggregate(func: AggregateFunc, field: Optional[str], label: Optional[str]) -> Aggregate:
    path = FieldPath.parse(field) if field is not None else None
    if label is None:
        label = func.value if path is None else f"{func.value}_{'_'.join((path.column, *path.path))}"
    FieldPath.parse(label)
    if "." in label:
        raise ValidationError(f"Invalid aggregate label: {label!r}")
    return Aggregate(func=func, field=path, label=label)


def count(field: Optional[str] = None, label: Optional[str] = None) -> Aggregate:
    """COUNT(*) or COUNT(field) (non-null values)."""
    return _aggregate(AggregateFunc.COUNT, field, label)


def sum_(field: str, label: Optional[str] = None) -> Aggregate:
    return _aggregate(AggregateFunc.SUM, field, label)


def min_(field: str, label: Optional[str] = None) -> Aggregate:
    return _aggregate(AggregateFunc.MIN, field, label)


def max_(field: str, label: Optional[str] = None) -> Aggregate:
    return _aggregate(AggregateFunc.MAX, field, label)


def avg(field: str, label: Optional[str] = None) -> Aggregate:
    return _aggregate(AggregateFunc.AVG, field, label)


@dataclass(frozen=True)
class Ordering:
    field: FieldPath
    descending: bool = False


def parse_direction(direction: str) -> bool:
    """Return True for descending. Raises ValidationError for anything but asc/desc."""
    if not isinstance(direction, str) or direction.lower() not in ("asc", "desc"):
        raise ValidationError(f"Order direction must be 'asc' or 'desc', got {direction!r}")
    return direction.lower() == "desc"


@dataclass(frozen=True)
class ScopedQuery:
    """
    Immutable description of a read against one entity for one tenant.

    `predicates` are AND-combined. Each element of `alternatives` is an
    OR-group: the row must satisfy at least one of its FilterSpecs. The tenant
    predicate is not stored here as a filter; backends always derive it from
    `tenant_id`.
    """

    entity: str
    tenant_id: str
    predicates: tuple[Predicate, ...] = ()
    alternatives: tuple[tuple[FilterSpec, ...], ...] = ()
    orderings: tuple[Ordering, ...] = ()
    row_limit: Optional[int] = None
    row_offset: int = 0
    selected: tuple[FieldPath, ...] = ()
    grouping: tuple[FieldPath, ...] = ()
    aggregates: tuple[Aggregate, ...] = ()

    def filter(self, filters: FilterInput) -> "ScopedQuery":
        spec = FilterSpec.parse(filters)
        return replace(self, predicates=self.predicates + spec.predicates)

    def where_any(self, *filters: FilterInput) -> "ScopedQuery":
        """Require at least one of `filters` to match (OR of AND-groups)."""
        specs = tuple(FilterSpec.parse(f) for f in filters)
        if not specs:
            raise ValidationError("where_any() needs at least one filter")
        return replace(self, alternatives=self.alternatives + (specs,))

    def order_by(self, field: str, direction: str = "asc") -> "ScopedQuery":
        ordering = Ordering(field=FieldPath.parse(field), descending=parse_direction(direction))
        return replace(self, orderings=self.orderings + (ordering,))

    def limit(self, n: int) -> "ScopedQuery":
        if not isinstance(n, int) or isinstance(n, bool) or n < 1:
            raise ValidationError(f"limit must be a positive integer, got {n!r}")
        return replace(self, row_limit=n)

    def offset(self, n: int) -> "ScopedQuery":
        if not isinstance(n, int) or isinstance(n, bool) or n < 0:
            raise ValidationError(f"offset must be a non-negative integer, got {n!r}")
        return replace(self, row_offset=n)

    def columns(self, *fields: str) -> "ScopedQuery":
        return replace(self, selected=self.selected + tuple(FieldPath.parse(f) for f in fields))

    def group_by(self, *fields: str) -> "ScopedQuery":
        return replace(self, grouping=self.grouping + tuple(FieldPath.parse(f) for f in fields))

    def aggregate(self, *aggregates: Aggregate) -> "ScopedQuery":
        for agg in aggregates:
            if not isinstance(agg, Aggregate):
                raise ValidationError(f"Expected an Aggregate, got {type(agg).__name__}")
        return replace(self, aggregates=self.aggregates + tuple(aggregates))

    @property
    def is_grouped(self) -> bool:
        return bool(self.grouping or self.aggregates)

    def output_names(self) -> tuple[str, ...]:
        """Keys of the result rows for grouped/aggregate queries."""
        return tuple(str(f) for f in self.grouping) + tuple(a.label for a in self.aggregates)

    def field_paths(self) -> Iterator[FieldPath]:
        """Every stored field the query reads (aggregate labels excluded)."""
        for predicate in self.predicates:
            yield predicate.field
        for group in self.alternatives:
            for spec in group:
                for predicate in spec:
                    yield predicate.field
        if not self.is_grouped:
            for ordering in self.orderings:
                yield ordering.field
        yield from self.selected
        yield from self.grouping
        for agg in self.aggregates:
            if agg.field is not None:
                yield agg.field

    def validate(self) -> None:
        """Check combinations that only make sense together. Raises ValidationError."""
        if self.is_grouped and self.selected:
            raise ValidationError("columns() cannot be combined with group_by() or aggregate()")
        if self.is_grouped:
            names = set(self.output_names())
            if len(names) != len(self.output_names()):
                raise ValidationError("Duplicate output names in grouped query")
            for ordering in self.orderings:
                if str(ordering.field) not in names:
                    raise ValidationError(
                        f"Grouped queries can only be ordered by grouped fields or aggregate labels, "
                        f"got '{ordering.field}'"
                    )
