from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from .common import EntityRead


class EventRead(EntityRead):
    """Event read model."""
    title: str = Field(..., description="Event title")
    starts_at: datetime = Field(..., description="Start time")
    ends_at: Optional[datetime] = Field(None)
    location: Optional[dict[str, Any]] = Field(None)
    status: Optional[str] = Field(None)
    tags: Optional[list[str]] = Field(None)
