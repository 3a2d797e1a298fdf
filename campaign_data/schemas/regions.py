from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from .common import EntityRead

NOT_AVAILABLE = "N/A"


class CoordinatorRead(EntityRead):
    """Coordinator read model."""
    name: str = Field(..., description="Coordinator name")
    email: Optional[str] = Field(None)
    phone: Optional[str] = Field(None)


class RegionRead(EntityRead):
    """Region read model. Member municipalities are read through region_id, not stored here."""
    name: str = Field(..., description="Region name")
    color: str = Field(..., description="Display color (#RRGGBB)")
    coordinator_id: Optional[str] = Field(None, description="Assigned coordinator")


class MunicipalityRead(EntityRead):
    """Municipality read model."""
    name: str = Field(..., description="Municipality name")
    region_id: str = Field(..., description="Owning region")
    population: int = Field(..., ge=0)
    area_km2: float = Field(..., ge=0)
    geometry: Optional[dict[str, Any]] = Field(None, description="GeoJSON geometry")


class PopulationExtreme(BaseModel):
    """Name and population of the most or least populous municipality."""
    name: str = Field(NOT_AVAILABLE)
    population: int = Field(0, ge=0)


class MunicipalityShare(BaseModel):
    """A municipality's share of its region's population."""
    id: str
    name: str
    population: int = Field(..., ge=0)
    share_pct: float = Field(..., ge=0, description="Percentage of the region population (0-100)")


class RegionStatistics(BaseModel):
    """Statistics derived from the current municipalities of a region. Never persisted."""
    region_id: str
    total_municipalities: int = Field(0, ge=0)
    population_total: int = Field(0, ge=0)
    area_total_km2: float = Field(0.0, ge=0)
    density: float = Field(0.0, ge=0, description="Inhabitants per km2; 0 when the area is 0")
    average_population: float = Field(0.0, ge=0, description="Population per municipality")
    most_populous: PopulationExtreme = Field(default_factory=PopulationExtreme)
    least_populous: PopulationExtreme = Field(default_factory=PopulationExtreme)
    municipality_shares: list[MunicipalityShare] = Field(default_factory=list)


class RegionMap(BaseModel):
    """Everything the map screen needs for one tenant, each list ordered by name."""
    regions: list[RegionRead] = Field(default_factory=list)
    municipalities: list[MunicipalityRead] = Field(default_factory=list)
    coordinators: list[CoordinatorRead] = Field(default_factory=list)


class ColorUpdate(BaseModel):
    """Payload to recolor a region."""
    color: str = Field(..., description="Color in #RRGGBB form", examples=["#10B981"])


class CoordinatorAssignment(BaseModel):
    """Payload to assign (or clear, with null) a region's coordinator."""
    coordinator_id: Optional[str] = Field(None)
