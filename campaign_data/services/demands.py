from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

from campaign_data.core.errors import ValidationError
from campaign_data.core.tenancy import TenantContextProvider
from campaign_data.db.backend import StorageBackend
from campaign_data.repositories.query import count
from campaign_data.schemas.common import Page
from campaign_data.schemas.demands import (
    DemandRead,
    DemandStatus,
    DemandUpdateRead,
    DemandWithUpdates,
    StatusCount,
)
from campaign_data.services.base import BaseService

logger = logging.getLogger(__name__)

# Client filter keys accepted by list_demands and the column each one targets.
FILTER_COLUMNS = {
    "status": "status",
    "category": "category",
    "priority": "priority",
    "requester_id": "requester_id",
    "assignee_id": "assignee_id",
}


def status_label(value: Union[str, DemandStatus]) -> str:
    """Stored label for a status key. Raises ValidationError for unknown keys."""
    try:
        return DemandStatus(value).label
    except ValueError:
        raise ValidationError(
            f"Unknown demand status {value!r}; expected one of {[s.value for s in DemandStatus]}"
        ) from None


class DemandService(BaseService):
    """
    Citizen demands and their progress updates.

    Status keys from clients (open, in_progress, ...) are translated to the
    labels stored in demands.status before they reach the repository.
    """

    def __init__(self, backend: StorageBackend, tenant_provider: TenantContextProvider) -> None:
        super().__init__(backend, tenant_provider)
        self.demands = self.repository("demands")
        self.updates = self.repository("demand_updates")

    def _filters(self, search: Optional[str], filters: Optional[Mapping[str, Any]]) -> dict[str, Any]:
        query: dict[str, Any] = {}
        if search:
            query["title"] = {"like": search}
        for key, value in (filters or {}).items():
            if value is None or value == "":
                continue
            column = FILTER_COLUMNS.get(key)
            if column is None:
                raise ValidationError(f"Unsupported demand filter '{key}'")
            if key == "status":
                if isinstance(value, (list, tuple)):
                    value = [status_label(v) for v in value]
                else:
                    value = status_label(value)
            query[column] = value
        return query

    # PUBLIC_INTERFACE
    async def list_demands(
        self,
        page: int = 1,
        per_page: int = 10,
        search: Optional[str] = None,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: str = "created_at",
        order_direction: str = "desc",
    ) -> Page[DemandRead]:
        """
        List demands of the active tenant.

        Parameters:
            page: 1-based page
            per_page: page size
            search: case-insensitive substring of the title
            filters: status (key or list of keys), category, priority, requester_id, assignee_id
            order_by: field to order by
            order_direction: "asc" or "desc"
        Returns:
            Page of DemandRead
        """
        return await self.demands.get_all(
            page=page,
            page_size=per_page,
            order_by=order_by,
            order_direction=order_direction,
            filters=self._filters(search, filters),
        )

    # PUBLIC_INTERFACE
    async def get_demand_with_updates(self, demand_id: str) -> Optional[DemandWithUpdates]:
        """Demand plus its updates (newest first), or None when it does not exist."""
        demand = await self.demands.get_by_id(demand_id)
        if demand is None:
            return None
        result = await self.updates.custom_query(
            lambda q: q.filter({"demand_id": demand.id}).order_by("created_at", "desc").order_by("id")
        )
        updates = [DemandUpdateRead.model_validate(row) for row in result.data]
        return DemandWithUpdates(**demand.model_dump(), updates=updates)

    # PUBLIC_INTERFACE
    async def add_update(
        self, demand_id: str, message: str, new_status: Optional[Union[str, DemandStatus]] = None
    ) -> DemandUpdateRead:
        """
        Record a progress note authored by the current user. When `new_status`
        is given the demand's status changes too.
        """
        if not isinstance(message, str) or not message.strip():
            raise ValidationError("Update message must be a non-empty string")
        label = status_label(new_status) if new_status is not None else None
        await self.demands.require(demand_id)
        update = await self.updates.create(
            {
                "demand_id": str(demand_id),
                "message": message,
                "author_id": self.tenant_provider.current_user_id(),
            }
        )
        if label is not None:
            await self.demands.update(demand_id, {"status": label})
            logger.info("Demand %s moved to %s", demand_id, label)
        return update

    # PUBLIC_INTERFACE
    async def status_summary(self) -> list[StatusCount]:
        """Number of demands per stored status label, ordered by label."""
        result = await self.demands.custom_query(
            lambda q: q.group_by("status").aggregate(count(label="count")).order_by("status")
        )
        return [StatusCount(status=row["status"], count=row["count"]) for row in result.data]
