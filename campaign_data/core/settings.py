from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from campaign_data.core.errors import ConfigurationError


class AppSettings(BaseSettings):
    """
    Application-level settings for the data-access layer and its HTTP surface.

    This is separate from campaign_data.db.config.Settings, which focuses on the database layer.
    """

    APP_NAME: str = Field(default="Campaign Data API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Tenant-scoped data access for the campaign management platform: "
            "supporters, demands, events, documents and the region map."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")

    # Tenancy. Sourced externally; there is deliberately no default.
    ACTIVE_TENANT_ID: str = Field(..., description="Identifier of the tenant every operation is scoped to.")
    ACTIVE_USER_ID: Optional[str] = Field(default=None, description="Identifier of the acting user, if known.")

    # Data access
    STORAGE_BACKEND: Literal["sql", "memory"] = Field(
        default="sql",
        description="'sql' for the PostgreSQL backend, 'memory' for the in-process fake.",
    )
    DEFAULT_PAGE_SIZE: int = Field(default=10, ge=1)
    STATISTICS_PAGE_SIZE: int = Field(
        default=10_000,
        ge=1,
        description="Page size used to fetch every municipality of a region in one read.",
    )

    LOG_LEVEL: str = Field(default="INFO")

    # CORS
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: List[str] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: List[str] = Field(default_factory=lambda: ["*"])

    ENVIRONMENT: Optional[str] = Field(
        default=None, description="Environment label (dev/test/prod)"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("ACTIVE_TENANT_ID")
    @classmethod
    def _require_tenant(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("ACTIVE_TENANT_ID must be a non-empty string")
        return v

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS origins.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]


# PUBLIC_INTERFACE
def get_app_settings(**overrides) -> AppSettings:
    """
    Return a new AppSettings instance populated from environment variables.

    Keyword overrides take precedence over the environment (useful for tests and
    embedding). A missing or blank ACTIVE_TENANT_ID is a startup-time
    configuration error.

    Raises:
        ConfigurationError: when the settings cannot be validated.
    """
    try:
        return AppSettings(**overrides)
    except PydanticValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
        raise ConfigurationError(
            f"Invalid application configuration: {', '.join(fields) or 'unknown field'}",
            details=exc.errors(include_url=False, include_context=False, include_input=False),
        ) from exc
