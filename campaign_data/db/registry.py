"""
Entity registry: maps entity-type names to their table and read schema.

Both storage backends and the repository resolve entities here, so the set of
columns, which of them are required, and which hold JSON or arrays is defined
once (by the ORM models) and shared.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from functools import cached_property
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import ARRAY, JSON, Column, String, Table

from campaign_data.core.errors import ValidationError
from campaign_data.db.base import MANAGED_COLUMNS, Base
from campaign_data.db.models import (
    Coordinator,
    Demand,
    DemandUpdate,
    Document,
    Event,
    Municipality,
    Region,
    Supporter,
    User,
)
from campaign_data.repositories.filters import FieldPath, Operator, Predicate
from campaign_data.schemas.demands import DemandRead, DemandUpdateRead
from campaign_data.schemas.documents import DocumentRead
from campaign_data.schemas.events import EventRead
from campaign_data.schemas.regions import CoordinatorRead, MunicipalityRead, RegionRead
from campaign_data.schemas.supporters import SupporterRead, UserRead


_NUMERIC = (int, float, Decimal)


def _python_type(column_type) -> Optional[type]:
    try:
        return column_type.python_type
    except NotImplementedError:
        return None


def _compatible(value: object, expected: Optional[type]) -> bool:
    if expected is None:
        return True
    if expected is bool:
        return isinstance(value, bool)
    if expected in _NUMERIC:
        return isinstance(value, _NUMERIC) and not isinstance(value, bool)
    if expected is datetime:
        return isinstance(value, datetime)
    if expected is date:
        return isinstance(value, date) and not isinstance(value, datetime)
    return isinstance(value, expected)


@dataclass(frozen=True)
class EntityDefinition:
    """Static description of one entity type."""

    name: str
    model: type[Base]
    schema: type[BaseModel]

    @property
    def table(self) -> Table:
        return self.model.__table__  # type: ignore[return-value]

    @cached_property
    def columns(self) -> dict[str, Column]:
        return {c.name: c for c in self.table.columns}

    def column(self, name: str) -> Column:
        """Return the column called `name` or raise ValidationError."""
        try:
            return self.columns[name]
        except KeyError:
            raise ValidationError(f"Unknown field '{name}' for {self.name}") from None

    def check_path(self, path: FieldPath) -> Column:
        """Resolve the column behind `path`; dotted paths are only valid on JSON columns."""
        col = self.column(path.column)
        if path.nested and not isinstance(col.type, JSON):
            raise ValidationError(f"Field '{path}' is nested but '{path.column}' is not a JSON column")
        return col

    def check_predicate(self, predicate: Predicate) -> None:
        """
        Reject predicates that cannot apply to the column they name: LIKE on
        non-text columns, CONTAINS on non-array columns and values of the
        wrong type. Values inside JSON columns are not typed and pass through.
        """
        field = predicate.field
        col = self.check_path(field)
        if field.nested:
            return
        if predicate.op is Operator.LIKE and not isinstance(col.type, String):
            raise ValidationError(f"'like' needs a text field, '{field}' is not one")
        if predicate.op is Operator.CONTAINS:
            if not isinstance(col.type, (ARRAY, JSON)):
                raise ValidationError(f"'contains' needs an array field, '{field}' is not one")
            if isinstance(col.type, JSON):
                return
            expected = _python_type(col.type.item_type)
        elif isinstance(col.type, (ARRAY, JSON)):
            raise ValidationError(f"Operator '{predicate.op.value}' is not supported on '{field}'")
        else:
            expected = _python_type(col.type)

        values = predicate.value if predicate.op in (Operator.IN, Operator.CONTAINS) else (predicate.value,)
        for value in values:
            if not _compatible(value, expected):
                raise ValidationError(
                    f"Filter on '{field}' expects {expected.__name__}, got {type(value).__name__}"
                )

    def is_json(self, name: str) -> bool:
        return isinstance(self.column(name).type, JSON)

    def is_array(self, name: str) -> bool:
        return isinstance(self.column(name).type, ARRAY)

    @cached_property
    def writable_fields(self) -> frozenset[str]:
        return frozenset(n for n in self.columns if n not in MANAGED_COLUMNS)

    @cached_property
    def required_fields(self) -> frozenset[str]:
        """Columns that must be supplied on create: NOT NULL without any default."""
        return frozenset(
            c.name
            for c in self.table.columns
            if c.name in self.writable_fields
            and not c.nullable
            and c.default is None
            and c.server_default is None
        )

    @cached_property
    def non_nullable_fields(self) -> frozenset[str]:
        """Writable NOT NULL columns; an explicit None is never accepted for these."""
        return frozenset(c.name for c in self.table.columns if c.name in self.writable_fields and not c.nullable)

    def python_default(self, name: str) -> Optional[object]:
        """Scalar client-side default for `name`, if the model declares one."""
        default = self.column(name).default
        if default is not None and getattr(default, "is_scalar", False):
            return default.arg
        return None


ENTITIES: dict[str, EntityDefinition] = {
    d.name: d
    for d in (
        EntityDefinition("regions", Region, RegionRead),
        EntityDefinition("municipalities", Municipality, MunicipalityRead),
        EntityDefinition("coordinators", Coordinator, CoordinatorRead),
        EntityDefinition("supporters", Supporter, SupporterRead),
        EntityDefinition("users", User, UserRead),
        EntityDefinition("demands", Demand, DemandRead),
        EntityDefinition("demand_updates", DemandUpdate, DemandUpdateRead),
        EntityDefinition("events", Event, EventRead),
        EntityDefinition("documents", Document, DocumentRead),
    )
}


# PUBLIC_INTERFACE
def get_entity(name: str) -> EntityDefinition:
    """Return the definition registered under `name` or raise ValidationError."""
    try:
        return ENTITIES[name]
    except KeyError:
        raise ValidationError(f"Unknown entity type '{name}'") from None
