from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from campaign_data.api.deps import get_demand_service
from campaign_data.schemas.common import Page
from campaign_data.schemas.demands import DemandRead, DemandStatus, StatusCount
from campaign_data.services.demands import DemandService

router = APIRouter(prefix="/demands", tags=["Demands"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=Page[DemandRead],
    summary="List demands",
    description="Paginated demands of the active tenant with optional search and filters.",
)
async def list_demands(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=1000),
    search: Optional[str] = Query(None, description="Case-insensitive title search"),
    status: Optional[List[DemandStatus]] = Query(None, description="Status keys; repeat for several"),
    category: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    requester_id: Optional[str] = Query(None),
    assignee_id: Optional[str] = Query(None),
    order_by: str = Query("created_at"),
    order_direction: str = Query("desc", pattern="^(asc|desc)$"),
    service: DemandService = Depends(get_demand_service),
) -> Page[DemandRead]:
    filters = {
        "status": status or None,
        "category": category,
        "priority": priority,
        "requester_id": requester_id,
        "assignee_id": assignee_id,
    }
    return await service.list_demands(
        page=page,
        per_page=per_page,
        search=search,
        filters=filters,
        order_by=order_by,
        order_direction=order_direction,
    )


# PUBLIC_INTERFACE
@router.get(
    "/status-summary",
    response_model=List[StatusCount],
    summary="Demands per status",
)
async def demand_status_summary(service: DemandService = Depends(get_demand_service)) -> List[StatusCount]:
    return await service.status_summary()
