"""
Tenant context providers.

Every repository is constructed with a provider and asks it for the tenant id
once per operation. Providers never cache anything on behalf of the caller, so
swapping the provider (or the value it returns) is reflected on the next call.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from campaign_data.core.errors import ConfigurationError
from campaign_data.core.settings import AppSettings


@runtime_checkable
class TenantContextProvider(Protocol):
    """Supplies the active tenant and, when known, the acting user."""

    def current_tenant_id(self) -> str: ...

    def current_user_id(self) -> Optional[str]: ...


# PUBLIC_INTERFACE
def tenant_guard(tenant_id: Optional[str]) -> str:
    """Assert tenant_id is present and non-empty before any storage access.
    Returns the stripped tenant_id. Raises ConfigurationError if invalid."""
    if tenant_id is None or not str(tenant_id).strip():
        raise ConfigurationError("tenant_id is required and must be non-empty")
    return str(tenant_id).strip()


@dataclass(frozen=True)
class StaticTenantContext:
    """Tenant context with explicit ids. tenant_id required; user_id optional."""

    tenant_id: str
    user_id: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "tenant_id", tenant_guard(self.tenant_id))

    def current_tenant_id(self) -> str:
        return self.tenant_id

    def current_user_id(self) -> Optional[str]:
        return self.user_id


class SettingsTenantContext:
    """Tenant context read from application settings (ACTIVE_TENANT_ID / ACTIVE_USER_ID)."""

    def __init__(self, settings: AppSettings) -> None:
        self._settings = settings
        # Validate eagerly: absence is a startup problem, not a per-call one.
        tenant_guard(settings.ACTIVE_TENANT_ID)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "SettingsTenantContext":
        return cls(settings)

    def current_tenant_id(self) -> str:
        return tenant_guard(self._settings.ACTIVE_TENANT_ID)

    def current_user_id(self) -> Optional[str]:
        return self._settings.ACTIVE_USER_ID
