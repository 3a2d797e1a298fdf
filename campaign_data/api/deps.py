from __future__ import annotations

from fastapi import Depends, Request

from campaign_data.core.settings import AppSettings
from campaign_data.core.tenancy import TenantContextProvider
from campaign_data.db.backend import StorageBackend
from campaign_data.services.demands import DemandService
from campaign_data.services.regions import RegionAggregator


# PUBLIC_INTERFACE
def get_settings(request: Request) -> AppSettings:
    """Settings the application was created with."""
    return request.app.state.settings


# PUBLIC_INTERFACE
def get_backend(request: Request) -> StorageBackend:
    """Storage backend chosen when the application was created."""
    return request.app.state.backend


# PUBLIC_INTERFACE
def get_tenant_context(request: Request) -> TenantContextProvider:
    """
    Tenant context for the request.

    The tenant always comes from configuration; tenant headers sent by the
    client are not consulted.
    """
    return request.app.state.tenant_context


# PUBLIC_INTERFACE
def get_region_aggregator(
    backend: StorageBackend = Depends(get_backend),
    tenant: TenantContextProvider = Depends(get_tenant_context),
    settings: AppSettings = Depends(get_settings),
) -> RegionAggregator:
    return RegionAggregator.from_backend(backend, tenant, statistics_page_size=settings.STATISTICS_PAGE_SIZE)


# PUBLIC_INTERFACE
def get_demand_service(
    backend: StorageBackend = Depends(get_backend),
    tenant: TenantContextProvider = Depends(get_tenant_context),
) -> DemandService:
    return DemandService(backend, tenant)
