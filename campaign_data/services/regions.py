from __future__ import annotations

import logging
import re
from typing import Optional

from campaign_data.core.errors import ConfigurationError, StorageError, ValidationError
from campaign_data.core.tenancy import TenantContextProvider
from campaign_data.db.backend import StorageBackend
from campaign_data.repositories.base import Repository
from campaign_data.schemas.common import Page
from campaign_data.schemas.regions import (
    MunicipalityRead,
    MunicipalityShare,
    PopulationExtreme,
    RegionMap,
    RegionStatistics,
)

logger = logging.getLogger(__name__)

STATISTICS_PAGE_SIZE = 10_000
_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


# PUBLIC_INTERFACE
def summarize_municipalities(region_id: str, municipalities: list[MunicipalityRead]) -> RegionStatistics:
    """
    Reduce a region's municipalities to RegionStatistics.

    Density is population per km2 and 0 when the total area is 0. On ties
    for most/least populous the first municipality in the given order wins.
    """
    if not municipalities:
        return RegionStatistics(region_id=region_id)

    population_total = sum(m.population for m in municipalities)
    area_total = sum(m.area_km2 for m in municipalities)

    most = least = municipalities[0]
    for municipality in municipalities[1:]:
        if municipality.population > most.population:
            most = municipality
        if municipality.population < least.population:
            least = municipality

    ranked = sorted(municipalities, key=lambda m: m.population, reverse=True)
    shares = [
        MunicipalityShare(
            id=m.id,
            name=m.name,
            population=m.population,
            share_pct=(m.population / population_total * 100.0) if population_total > 0 else 0.0,
        )
        for m in ranked
    ]

    return RegionStatistics(
        region_id=region_id,
        total_municipalities=len(municipalities),
        population_total=population_total,
        area_total_km2=area_total,
        density=(population_total / area_total) if area_total > 0 else 0.0,
        average_population=population_total / len(municipalities),
        most_populous=PopulationExtreme(name=most.name, population=most.population),
        least_populous=PopulationExtreme(name=least.name, population=least.population),
        municipality_shares=shares,
    )


class RegionAggregator:
    """
    Region statistics and region edits on top of the generic repositories.

    Statistics are computed on every call from the municipalities currently
    stored for the region; nothing is cached or persisted.
    """

    def __init__(
        self,
        regions: Repository,
        municipalities: Repository,
        coordinators: Optional[Repository] = None,
        *,
        statistics_page_size: int = STATISTICS_PAGE_SIZE,
    ) -> None:
        if regions.tenant_provider is not municipalities.tenant_provider:
            raise ConfigurationError("regions and municipalities repositories must share a tenant provider")
        self.regions = regions
        self.municipalities = municipalities
        self.coordinators = coordinators or Repository("coordinators", regions.backend, regions.tenant_provider)
        self.statistics_page_size = statistics_page_size

    @classmethod
    def from_backend(
        cls,
        backend: StorageBackend,
        tenant_provider: TenantContextProvider,
        *,
        statistics_page_size: int = STATISTICS_PAGE_SIZE,
    ) -> "RegionAggregator":
        return cls(
            Repository("regions", backend, tenant_provider),
            Repository("municipalities", backend, tenant_provider),
            Repository("coordinators", backend, tenant_provider),
            statistics_page_size=statistics_page_size,
        )

    # PUBLIC_INTERFACE
    async def compute_statistics(self, region_id: str) -> RegionStatistics:
        """
        Compute statistics for one region.

        Raises:
            NotFoundError: the region does not exist for the active tenant.
            StorageError: the backend failed, or the region has more municipalities
                than one read of `statistics_page_size` rows returns.
        """
        await self.regions.require(region_id)
        page = await self._read_municipalities(region_id)
        if page.total_count > len(page.items):
            raise StorageError(
                f"Region {region_id} has {page.total_count} municipalities; "
                f"statistics read at most {self.statistics_page_size}"
            )
        stats = summarize_municipalities(region_id, list(page.items))
        logger.debug("Statistics for region %s over %d municipalities", region_id, stats.total_municipalities)
        return stats

    # PUBLIC_INTERFACE
    async def list_municipalities(self, region_id: str) -> list[MunicipalityRead]:
        """Municipalities of `region_id` ordered by name."""
        page = await self._read_municipalities(region_id)
        if page.total_count > len(page.items):
            logger.warning(
                "Region %s has %d municipalities; only the first %d were read",
                region_id,
                page.total_count,
                len(page.items),
            )
        return list(page.items)

    async def _read_municipalities(self, region_id: str) -> Page[MunicipalityRead]:
        return await self.municipalities.get_all(
            page=1,
            page_size=self.statistics_page_size,
            order_by="name",
            order_direction="asc",
            filters={"region_id": str(region_id)},
        )

    # PUBLIC_INTERFACE
    async def set_region_color(self, region_id: str, color: str) -> None:
        """Recolor a region. `color` must be #RRGGBB."""
        if not isinstance(color, str) or not _COLOR.match(color):
            raise ValidationError(f"Color must be in #RRGGBB form, got {color!r}")
        await self.regions.update(region_id, {"color": color})

    # PUBLIC_INTERFACE
    async def set_region_coordinator(self, region_id: str, coordinator_id: Optional[str]) -> None:
        """Assign a coordinator to a region, or clear it with None."""
        if coordinator_id is not None:
            await self.coordinators.require(coordinator_id)
        await self.regions.update(region_id, {"coordinator_id": coordinator_id})

    # PUBLIC_INTERFACE
    async def reassign_municipality(self, municipality_id: str, region_id: str) -> MunicipalityRead:
        """Move a municipality to another region of the same tenant."""
        await self.regions.require(region_id)
        return await self.municipalities.update(municipality_id, {"region_id": str(region_id)})

    # PUBLIC_INTERFACE
    async def load_map(self) -> RegionMap:
        """Regions, municipalities and coordinators of the active tenant, each ordered by name."""
        listings = {}
        for name, repo in (
            ("regions", self.regions),
            ("municipalities", self.municipalities),
            ("coordinators", self.coordinators),
        ):
            page = await repo.get_all(
                page=1, page_size=self.statistics_page_size, order_by="name", order_direction="asc"
            )
            listings[name] = page.items
        return RegionMap(**listings)

