from __future__ import annotations

from typing import Any, Optional

from pydantic import Field

from .common import EntityRead


class SupporterRead(EntityRead):
    """Supporter read model."""
    name: str = Field(..., description="Supporter name")
    email: Optional[str] = Field(None)
    phone: Optional[str] = Field(None)
    address: Optional[dict[str, Any]] = Field(None, description="Structured address (street, city, state, ...)")
    engagement_level: Optional[str] = Field(None)
    status: Optional[str] = Field(None)
    tags: Optional[list[str]] = Field(None)
    leader_id: Optional[str] = Field(None)


class UserRead(EntityRead):
    """User profile read model."""
    email: str = Field(..., description="Login email")
    full_name: Optional[str] = Field(None)
    role: Optional[str] = Field(None)
    is_active: bool = Field(True)
