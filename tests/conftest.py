"""Shared fixtures: in-memory backend, two tenants, seeded region data."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest
import pytest_asyncio

from campaign_data.core.tenancy import StaticTenantContext
from campaign_data.db.memory import InMemoryBackend
from campaign_data.repositories.base import Repository
from campaign_data.services.regions import RegionAggregator

TENANT_A = "tenant-a"
TENANT_B = "tenant-b"


@pytest.fixture
def backend() -> InMemoryBackend:
    """Provide an empty in-memory backend."""
    return InMemoryBackend()


@pytest.fixture
def tenant_a() -> StaticTenantContext:
    return StaticTenantContext(TENANT_A, user_id="user-a")


@pytest.fixture
def tenant_b() -> StaticTenantContext:
    return StaticTenantContext(TENANT_B, user_id="user-b")


@pytest.fixture
def repo_factory(backend: InMemoryBackend):
    """Build repositories over the shared backend for a given tenant context."""

    def _make(entity: str, tenant: StaticTenantContext) -> Repository:
        return Repository(entity, backend, tenant)

    return _make


@dataclass
class SeededRegions:
    """Ids created by the `seeded` fixture."""

    north: str
    south: str
    empty: str
    coordinator: str
    municipalities: dict[str, str] = field(default_factory=dict)
    other_tenant_region: str = ""


@pytest_asyncio.fixture
async def seeded(repo_factory, tenant_a, tenant_b) -> SeededRegions:
    """
    Seed tenant A with three regions and tenant B with one.

    North holds Alpha (100 / 10 km2), Beta (500 / 50 km2) and Gamma (50 / 5 km2).
    South holds Delta (1000 / 0 km2). Empty has no municipalities.
    """
    regions = repo_factory("regions", tenant_a)
    municipalities = repo_factory("municipalities", tenant_a)
    coordinators = repo_factory("coordinators", tenant_a)

    coordinator = await coordinators.create({"name": "Ana Souza", "email": "ana@example.org"})
    north = await regions.create({"name": "North"})
    south = await regions.create({"name": "South", "color": "#10B981"})
    empty = await regions.create({"name": "Empty"})

    created = {}
    for name, region, population, area in (
        ("Alpha", north.id, 100, 10.0),
        ("Beta", north.id, 500, 50.0),
        ("Gamma", north.id, 50, 5.0),
        ("Delta", south.id, 1000, 0.0),
    ):
        row = await municipalities.create(
            {"name": name, "region_id": region, "population": population, "area_km2": area}
        )
        created[name] = row.id

    other_regions = repo_factory("regions", tenant_b)
    other_municipalities = repo_factory("municipalities", tenant_b)
    foreign = await other_regions.create({"name": "North"})
    await other_municipalities.create(
        {"name": "Foreign", "region_id": foreign.id, "population": 7, "area_km2": 1.0}
    )

    return SeededRegions(
        north=north.id,
        south=south.id,
        empty=empty.id,
        coordinator=coordinator.id,
        municipalities=created,
        other_tenant_region=foreign.id,
    )


@pytest.fixture
def aggregator(backend: InMemoryBackend, tenant_a: StaticTenantContext) -> RegionAggregator:
    return RegionAggregator.from_backend(backend, tenant_a)
