from __future__ import annotations

import logging
from typing import Any, Callable, Generic, Mapping, Optional, TypeVar

from pydantic import BaseModel

from campaign_data.core.errors import NotFoundError, ValidationError
from campaign_data.core.logging import bind_tenant
from campaign_data.core.tenancy import TenantContextProvider, tenant_guard
from campaign_data.db.backend import Row, StorageBackend
from campaign_data.db.base import MANAGED_COLUMNS, TENANT_COLUMN
from campaign_data.db.registry import EntityDefinition, get_entity
from campaign_data.repositories.filters import FieldPath, FilterSpec
from campaign_data.repositories.query import ScopedQuery, parse_direction
from campaign_data.schemas.common import Page, QueryResult

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

QueryBuilder = Callable[[ScopedQuery], ScopedQuery]

DEFAULT_PAGE_SIZE = 10
DEFAULT_ORDER_BY = "created_at"


class Repository(Generic[SchemaT]):
    """
    Tenant-scoped CRUD access to one entity type.

    The tenant comes from the provider given at construction and is read once
    at the start of every operation; it is never accepted from the caller's
    filters or payloads. Rows belonging to other tenants behave exactly like
    rows that do not exist.

    Note:
      Every argument is validated before the backend is called, so a
      ValidationError always means nothing was read or written.
    """

    def __init__(
        self,
        entity: str,
        backend: StorageBackend,
        tenant_provider: TenantContextProvider,
        *,
        default_page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.definition: EntityDefinition = get_entity(entity)
        self.backend = backend
        self.tenant_provider = tenant_provider
        self.default_page_size = default_page_size

    @property
    def entity(self) -> str:
        return self.definition.name

    def _tenant(self) -> str:
        return tenant_guard(self.tenant_provider.current_tenant_id())

    def _to_schema(self, row: Row) -> SchemaT:
        return self.definition.schema.model_validate(row)  # type: ignore[return-value]

    def _check_query(self, query: ScopedQuery) -> None:
        query.validate()
        for predicate in query.predicates:
            self.definition.check_predicate(predicate)
        for group in query.alternatives:
            for spec in group:
                for predicate in spec:
                    self.definition.check_predicate(predicate)
        for path in query.field_paths():
            self.definition.check_path(path)

    def _scoped_filters(self, filters: Optional[Mapping[str, Any]]) -> FilterSpec:
        spec, removed = FilterSpec.parse(filters).without_column(TENANT_COLUMN)
        if removed:
            # The active tenant always wins over a caller-supplied tenant filter.
            logger.warning("Ignoring tenant_id filter on %s; results stay scoped to the active tenant", self.entity)
        return spec

    def _reject_nulls(self, payload: Mapping[str, Any]) -> None:
        for name in sorted(self.definition.non_nullable_fields & payload.keys()):
            if payload[name] is None:
                raise ValidationError(f"Field '{name}' of {self.entity} cannot be null")

    def _payload(self, data: Mapping[str, Any] | BaseModel) -> dict[str, Any]:
        if isinstance(data, BaseModel):
            data = data.model_dump(exclude_unset=True)
        if not isinstance(data, Mapping):
            raise ValidationError(f"Payload for {self.entity} must be a mapping, got {type(data).__name__}")
        payload = {}
        for key, value in data.items():
            if key in MANAGED_COLUMNS:
                continue
            if key not in self.definition.writable_fields:
                raise ValidationError(f"Unknown field '{key}' for {self.entity}")
            payload[key] = value
        return payload

    # PUBLIC_INTERFACE
    async def get_all(
        self,
        page: int = 1,
        page_size: Optional[int] = None,
        order_by: str = DEFAULT_ORDER_BY,
        order_direction: str = "desc",
        filters: Optional[Mapping[str, Any]] = None,
    ) -> Page[SchemaT]:
        """
        Return one page of the tenant's rows.

        Parameters:
            page: 1-based page number
            page_size: rows per page (defaults to the repository's page size)
            order_by: field to order by; ties are broken by id ascending
            order_direction: "asc" or "desc"
            filters: filter mapping, see repositories.filters
        Returns:
            Page with the rows and the total number of matches.
        """
        page_size = self.default_page_size if page_size is None else page_size
        for name, value in (("page", page), ("page_size", page_size)):
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ValidationError(f"{name} must be a positive integer, got {value!r}")
        descending = parse_direction(order_direction)
        self.definition.check_path(FieldPath.parse(order_by))
        spec = self._scoped_filters(filters)

        tenant_id = self._tenant()
        query = (
            ScopedQuery(entity=self.entity, tenant_id=tenant_id)
            .filter(spec)
            .order_by(order_by, "desc" if descending else "asc")
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        if order_by != "id":
            query = query.order_by("id", "asc")
        self._check_query(query)

        with bind_tenant(tenant_id):
            result = await self.backend.select(query)
            logger.debug("get_all %s page=%d returned %d of %d", self.entity, page, len(result.data), result.count)
        return Page[self.definition.schema](  # type: ignore[name-defined]
            items=[self._to_schema(row) for row in result.data],
            total_count=result.count,
            page=page,
            page_size=page_size,
        )

    # PUBLIC_INTERFACE
    async def get_by_id(self, entity_id: str) -> Optional[SchemaT]:
        """Return the row with `entity_id`, or None when absent or owned by another tenant."""
        tenant_id = self._tenant()
        with bind_tenant(tenant_id):
            row = await self.backend.get(self.entity, tenant_id, str(entity_id))
        return self._to_schema(row) if row is not None else None

    async def require(self, entity_id: str) -> SchemaT:
        """Like get_by_id, but raises NotFoundError instead of returning None."""
        found = await self.get_by_id(entity_id)
        if found is None:
            raise NotFoundError(self.entity, str(entity_id))
        return found

    # PUBLIC_INTERFACE
    async def create(self, data: Mapping[str, Any] | BaseModel) -> SchemaT:
        """
        Insert a row owned by the active tenant.

        Managed fields (id, tenant_id, timestamps) in `data` are ignored.
        Raises ValidationError for unknown fields or missing required ones.
        """
        payload = self._payload(data)
        missing = sorted(f for f in self.definition.required_fields if payload.get(f) is None)
        if missing:
            raise ValidationError(f"Missing required field(s) for {self.entity}: {', '.join(missing)}")
        self._reject_nulls(payload)

        tenant_id = self._tenant()
        with bind_tenant(tenant_id):
            row = await self.backend.insert(self.entity, tenant_id, payload)
            logger.info("Created %s %s", self.entity, row["id"])
        return self._to_schema(row)

    # PUBLIC_INTERFACE
    async def update(self, entity_id: str, data: Mapping[str, Any] | BaseModel) -> SchemaT:
        """Apply a partial update. Raises NotFoundError when no row of this tenant has `entity_id`."""
        payload = self._payload(data)
        if not payload:
            raise ValidationError(f"Update for {self.entity} contains no writable fields")
        self._reject_nulls(payload)

        tenant_id = self._tenant()
        with bind_tenant(tenant_id):
            row = await self.backend.update(self.entity, tenant_id, str(entity_id), payload)
            if row is not None:
                logger.info("Updated %s %s", self.entity, entity_id)
        if row is None:
            raise NotFoundError(self.entity, str(entity_id))
        return self._to_schema(row)

    # PUBLIC_INTERFACE
    async def delete(self, entity_id: str) -> bool:
        """Delete the row. Returns False when nothing matched (already deleted or another tenant's)."""
        tenant_id = self._tenant()
        with bind_tenant(tenant_id):
            deleted = await self.backend.delete(self.entity, tenant_id, str(entity_id))
            if deleted:
                logger.info("Deleted %s %s", self.entity, entity_id)
        return deleted

    # PUBLIC_INTERFACE
    async def custom_query(self, builder: QueryBuilder) -> QueryResult:
        """
        Run a query shaped by `builder`.

        The builder receives a ScopedQuery already bound to this entity and
        the active tenant and must return a ScopedQuery derived from it.
        Results are plain dicts, since grouped queries do not produce entity rows.
        """
        tenant_id = self._tenant()
        base = ScopedQuery(entity=self.entity, tenant_id=tenant_id)
        query = builder(base)
        if not isinstance(query, ScopedQuery):
            raise ValidationError(f"Query builder must return a ScopedQuery, got {type(query).__name__}")
        if query.entity != self.entity or query.tenant_id != tenant_id:
            raise ValidationError("Query builder returned a query for a different entity or tenant")
        self._check_query(query)

        with bind_tenant(tenant_id):
            result = await self.backend.select(query)
            logger.debug("custom_query on %s returned %d of %d", self.entity, len(result.data), result.count)
        return result
