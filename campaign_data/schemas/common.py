from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class EntityRead(BaseModel):
    """Fields every stored entity carries."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Identifier generated by storage")
    tenant_id: str = Field(..., description="Owning tenant")
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    updated_at: datetime = Field(..., description="Last update timestamp (UTC)")


class Page(BaseModel, Generic[T]):
    """One page of a listing plus the total number of matching rows."""
    items: list[T] = Field(default_factory=list, description="Rows on this page")
    total_count: int = Field(..., ge=0, description="Rows matching the filter across all pages")
    page: int = Field(1, ge=1)
    page_size: int = Field(10, ge=1)

    @property
    def data(self) -> list[T]:
        return self.items

    @property
    def count(self) -> int:
        return self.total_count


class QueryResult(BaseModel):
    """Result of a custom (possibly grouped) query."""
    data: list[dict[str, Any]] = Field(default_factory=list)
    count: int = Field(0, ge=0, description="Rows (or groups) matching before limit/offset")


class MessageResponse(BaseModel):
    """Standard message response."""
    message: str = Field(..., description="Human readable message")
    details: Optional[dict] = Field(default=None, description="Optional extra data")


class ErrorInfo(BaseModel):
    """Structured error description."""
    type: str = Field(..., description="Machine-readable error type code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(default=None, description="Optional error details (e.g., validation issues)")


# PUBLIC_INTERFACE
class ErrorResponse(BaseModel):
    """Standardized API error envelope returned by exception handlers."""
    status: int = Field(..., description="HTTP status code")
    error: ErrorInfo = Field(..., description="Error details")
    correlation_id: Optional[str] = Field(default=None, description="Request correlation ID")
    path: Optional[str] = Field(default=None, description="Request path")
    method: Optional[str] = Field(default=None, description="HTTP method")
    timestamp: datetime = Field(..., description="Error timestamp (UTC)")
