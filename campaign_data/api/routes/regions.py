from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Path

from campaign_data.api.deps import get_region_aggregator
from campaign_data.schemas.common import MessageResponse
from campaign_data.schemas.regions import (
    ColorUpdate,
    CoordinatorAssignment,
    MunicipalityRead,
    RegionMap,
    RegionStatistics,
)
from campaign_data.services.regions import RegionAggregator

router = APIRouter(prefix="/regions", tags=["Regions"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=RegionMap,
    summary="Region map",
    description="Regions, municipalities and coordinators of the active tenant, each ordered by name.",
)
async def get_region_map(aggregator: RegionAggregator = Depends(get_region_aggregator)) -> RegionMap:
    return await aggregator.load_map()


# PUBLIC_INTERFACE
@router.get(
    "/{region_id}/statistics",
    response_model=RegionStatistics,
    summary="Region statistics",
    description="Population, area, density and extremes computed from the region's current municipalities.",
)
async def get_region_statistics(
    region_id: str = Path(..., description="Region id"),
    aggregator: RegionAggregator = Depends(get_region_aggregator),
) -> RegionStatistics:
    """
    Compute statistics for one region.

    Returns 404 when the region does not exist for the active tenant.
    """
    return await aggregator.compute_statistics(region_id)


# PUBLIC_INTERFACE
@router.get(
    "/{region_id}/municipalities",
    response_model=List[MunicipalityRead],
    summary="Municipalities of a region",
)
async def list_region_municipalities(
    region_id: str = Path(..., description="Region id"),
    aggregator: RegionAggregator = Depends(get_region_aggregator),
) -> List[MunicipalityRead]:
    await aggregator.regions.require(region_id)
    return await aggregator.list_municipalities(region_id)


# PUBLIC_INTERFACE
@router.put(
    "/{region_id}/color",
    response_model=MessageResponse,
    summary="Recolor a region",
)
async def update_region_color(
    payload: ColorUpdate,
    region_id: str = Path(..., description="Region id"),
    aggregator: RegionAggregator = Depends(get_region_aggregator),
) -> MessageResponse:
    await aggregator.set_region_color(region_id, payload.color)
    return MessageResponse(message="Region color updated", details={"region_id": region_id, "color": payload.color})


# PUBLIC_INTERFACE
@router.put(
    "/{region_id}/coordinator",
    response_model=MessageResponse,
    summary="Assign or clear a region's coordinator",
)
async def update_region_coordinator(
    payload: CoordinatorAssignment,
    region_id: str = Path(..., description="Region id"),
    aggregator: RegionAggregator = Depends(get_region_aggregator),
) -> MessageResponse:
    await aggregator.set_region_coordinator(region_id, payload.coordinator_id)
    return MessageResponse(
        message="Region coordinator updated",
        details={"region_id": region_id, "coordinator_id": payload.coordinator_id},
    )
