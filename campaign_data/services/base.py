from __future__ import annotations

from campaign_data.core.tenancy import TenantContextProvider
from campaign_data.db.backend import StorageBackend
from campaign_data.repositories.base import Repository


class BaseService:
    """
    Base class for services. Holds the backend and tenant provider shared by
    the repositories a service uses.

    Services should keep business logic and orchestration, delegating data access
    to repositories.
    """

    def __init__(self, backend: StorageBackend, tenant_provider: TenantContextProvider) -> None:
        self.backend = backend
        self.tenant_provider = tenant_provider

    def repository(self, entity: str) -> Repository:
        """Repository for `entity` bound to this service's backend and tenant provider."""
        return Repository(entity, self.backend, self.tenant_provider)
