"""
Declarative filter specification.

A filter is written as a mapping from field name to a value:

    {"status": "Open"}                          equality
    {"status": ["Open", "In Progress"]}         membership (IN)
    {"title": {"like": "water"}}                case-insensitive substring
    {"tags": {"contains": ["health"]}}          array containment
    {"population": {"gte": 10_000}}             ordering comparison (gt/gte/lt/lte)
    {"status": {"neq": "Cancelled"}}            inequality
    {"address.city": "Campo Grande"}            dotted path into a JSON column

The mapping is parsed once into an immutable FilterSpec made of typed
Predicate values; anything malformed is rejected at that point with a
ValidationError. Backends only ever see parsed predicates.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Iterator, Mapping, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, StrictStr, ValidationError as PydanticValidationError, model_validator

from campaign_data.core.errors import ValidationError

_SEGMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_SCALAR_TYPES = (str, int, float, bool, Decimal, date, datetime, time, UUID, Enum)


class Operator(str, Enum):
    EQ = "eq"
    IN = "in"
    LIKE = "like"
    CONTAINS = "contains"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    NEQ = "neq"


COMPARISON_OPERATORS = frozenset({Operator.GT, Operator.GTE, Operator.LT, Operator.LTE})


@dataclass(frozen=True)
class FieldPath:
    """A column name plus an optional path of keys inside a JSON column."""

    column: str
    path: tuple[str, ...] = ()

    @classmethod
    def parse(cls, name: Any) -> "FieldPath":
        if isinstance(name, FieldPath):
            return name
        if not isinstance(name, str) or not name:
            raise ValidationError(f"Invalid field name: {name!r}")
        segments = name.split(".")
        for segment in segments:
            if not _SEGMENT.match(segment):
                raise ValidationError(f"Invalid field name: {name!r}")
        return cls(column=segments[0], path=tuple(segments[1:]))

    @property
    def nested(self) -> bool:
        return bool(self.path)

    def __str__(self) -> str:
        return ".".join((self.column, *self.path))


def normalize_scalar(value: Any, field: str) -> Any:
    """Return `value` as a plain comparable scalar or raise ValidationError."""
    if not isinstance(value, _SCALAR_TYPES):
        raise ValidationError(
            f"Unsupported value for filter on '{field}': {type(value).__name__}"
        )
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    return value


class _OperatorModel(BaseModel):
    """Base for the `{operator: value}` wrappers. Exactly one key, no extras."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    operator: ClassVar[Operator]

    @property
    def value(self) -> Any:
        return getattr(self, self.operator.value)


class _ScalarOperatorModel(_OperatorModel):
    @model_validator(mode="after")
    def _check_scalar(self):
        if self.value is None or not isinstance(self.value, _SCALAR_TYPES):
            raise ValueError(f"'{self.operator.value}' expects a scalar value")
        return self


class Like(_OperatorModel):
    operator: ClassVar[Operator] = Operator.LIKE
    like: StrictStr


class Contains(_OperatorModel):
    operator: ClassVar[Operator] = Operator.CONTAINS
    contains: list[Any]

    @model_validator(mode="after")
    def _check_items(self):
        for item in self.contains:
            if item is None or not isinstance(item, _SCALAR_TYPES):
                raise ValueError("'contains' expects a list of scalar values")
        return self


class Gt(_ScalarOperatorModel):
    operator: ClassVar[Operator] = Operator.GT
    gt: Any


class Gte(_ScalarOperatorModel):
    operator: ClassVar[Operator] = Operator.GTE
    gte: Any


class Lt(_ScalarOperatorModel):
    operator: ClassVar[Operator] = Operator.LT
    lt: Any


class Lte(_ScalarOperatorModel):
    operator: ClassVar[Operator] = Operator.LTE
    lte: Any


class Neq(_ScalarOperatorModel):
    operator: ClassVar[Operator] = Operator.NEQ
    neq: Any


OperatorWrapper = Union[Like, Contains, Gt, Gte, Lt, Lte, Neq]

_WRAPPERS: dict[str, type[_OperatorModel]] = {
    model.operator.value: model for model in (Like, Contains, Gt, Gte, Lt, Lte, Neq)
}


@dataclass(frozen=True)
class Predicate:
    """One parsed filter entry. `value` is a tuple for IN and CONTAINS."""

    field: FieldPath
    op: Operator
    value: Any

    @classmethod
    def from_entry(cls, name: Any, raw: Any) -> Optional["Predicate"]:
        """
        Parse a single `field: value` entry.

        Returns None for entries that mean "no filter on this field"
        (None or the empty string).
        """
        field = FieldPath.parse(name)
        label = str(field)

        if raw is None or (isinstance(raw, str) and raw == ""):
            return None

        if isinstance(raw, _OperatorModel):
            return cls._from_wrapper(field, raw)

        if isinstance(raw, Mapping):
            if len(raw) != 1:
                raise ValidationError(
                    f"Filter on '{label}' must use exactly one operator, got {sorted(map(str, raw))}"
                )
            key = next(iter(raw))
            model = _WRAPPERS.get(key) if isinstance(key, str) else None
            if model is None:
                raise ValidationError(f"Unknown filter operator {key!r} on '{label}'")
            try:
                wrapper = model.model_validate(dict(raw))
            except PydanticValidationError as exc:
                raise ValidationError(
                    f"Malformed '{key}' filter on '{label}'",
                    details=exc.errors(include_url=False, include_context=False, include_input=False),
                ) from exc
            return cls._from_wrapper(field, wrapper)

        if isinstance(raw, (list, tuple, set, frozenset)):
            items = []
            for item in raw:
                if item is None:
                    raise ValidationError(f"Membership filter on '{label}' cannot contain null")
                items.append(normalize_scalar(item, label))
            return cls(field=field, op=Operator.IN, value=tuple(items))

        return cls(field=field, op=Operator.EQ, value=normalize_scalar(raw, label))

    @classmethod
    def _from_wrapper(cls, field: FieldPath, wrapper: _OperatorModel) -> "Predicate":
        label = str(field)
        if wrapper.operator is Operator.CONTAINS:
            value = tuple(normalize_scalar(v, label) for v in wrapper.value)
        else:
            value = normalize_scalar(wrapper.value, label)
        return cls(field=field, op=wrapper.operator, value=value)


@dataclass(frozen=True)
class FilterSpec:
    """An AND-combination of predicates, validated when it is built."""

    predicates: tuple[Predicate, ...] = ()

    @classmethod
    def parse(cls, filters: Union["FilterSpec", Mapping[str, Any], None]) -> "FilterSpec":
        """
        Build a FilterSpec from a mapping (or return an existing one unchanged).

        Raises:
            ValidationError: for malformed entries.
        """
        if filters is None:
            return cls()
        if isinstance(filters, FilterSpec):
            return filters
        if not isinstance(filters, Mapping):
            raise ValidationError(f"Filters must be a mapping, got {type(filters).__name__}")
        predicates = []
        for name, raw in filters.items():
            predicate = Predicate.from_entry(name, raw)
            if predicate is not None:
                predicates.append(predicate)
        return cls(predicates=tuple(predicates))

    def without_column(self, column: str) -> tuple["FilterSpec", tuple[Predicate, ...]]:
        """Split off top-level predicates on `column`. Returns (remaining, removed)."""
        kept = tuple(p for p in self.predicates if p.field.nested or p.field.column != column)
        removed = tuple(p for p in self.predicates if not p.field.nested and p.field.column == column)
        return FilterSpec(kept), removed

    def __iter__(self) -> Iterator[Predicate]:
        return iter(self.predicates)

    def __len__(self) -> int:
        return len(self.predicates)

    def __bool__(self) -> bool:
        return bool(self.predicates)
