from __future__ import annotations

from typing import Any, Mapping, Optional

from campaign_data.core.errors import ValidationError
from campaign_data.core.tenancy import TenantContextProvider
from campaign_data.db.backend import StorageBackend
from campaign_data.schemas.common import Page
from campaign_data.schemas.supporters import SupporterRead
from campaign_data.services.base import BaseService

# Client filter keys and the stored field each maps to.
FILTER_FIELDS = {
    "city": "address.city",
    "state": "address.state",
    "engagement_level": "engagement_level",
    "status": "status",
    "leader_id": "leader_id",
}


class SupporterService(BaseService):
    """Supporter listings with the filters used by the supporters screen."""

    def __init__(self, backend: StorageBackend, tenant_provider: TenantContextProvider) -> None:
        super().__init__(backend, tenant_provider)
        self.supporters = self.repository("supporters")

    # PUBLIC_INTERFACE
    async def list_supporters(
        self,
        page: int = 1,
        per_page: int = 10,
        search: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: str = "name",
        order_direction: str = "asc",
    ) -> Page[SupporterRead]:
        """
        List supporters of the active tenant.

        Parameters:
            search: case-insensitive substring of the name
            filters: city, state, engagement_level (value or list), status, leader_id,
                tags (list; every tag must be present)
        """
        query: dict[str, Any] = {}
        if search:
            query["name"] = {"like": search}
        for key, value in (filters or {}).items():
            if value is None or value == "":
                continue
            if key == "tags":
                if not isinstance(value, (list, tuple)):
                    raise ValidationError("Supporter 'tags' filter must be a list")
                if value:
                    query["tags"] = {"contains": list(value)}
                continue
            field = FILTER_FIELDS.get(key)
            if field is None:
                raise ValidationError(f"Unsupported supporter filter '{key}'")
            query[field] = value
        return await self.supporters.get_all(
            page=page, page_size=per_page, order_by=order_by, order_direction=order_direction, filters=query
        )

    # PUBLIC_INTERFACE
    async def list_by_leader(self, leader_id: str, page: int = 1, per_page: int = 10) -> Page[SupporterRead]:
        """Supporters recruited by `leader_id`."""
        return await self.list_supporters(page, per_page, filters={"leader_id": leader_id})
