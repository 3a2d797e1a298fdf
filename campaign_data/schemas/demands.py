from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .common import EntityRead


class DemandStatus(str, Enum):
    """Status keys used by clients, mapped to the labels stored in demands.status."""
    OPEN = "open"
    IN_ANALYSIS = "in_analysis"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELLED = "cancelled"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS = {
    DemandStatus.OPEN: "Open",
    DemandStatus.IN_ANALYSIS: "In Analysis",
    DemandStatus.IN_PROGRESS: "In Progress",
    DemandStatus.DONE: "Done",
    DemandStatus.CANCELLED: "Cancelled",
}


class DemandRead(EntityRead):
    """Demand read model."""
    title: str = Field(..., description="Short title")
    description: Optional[str] = Field(None)
    status: str = Field(..., description="Stored status label")
    category: Optional[str] = Field(None)
    priority: Optional[str] = Field(None)
    requester_id: Optional[str] = Field(None)
    assignee_id: Optional[str] = Field(None)
    tags: Optional[list[str]] = Field(None)


class DemandUpdateRead(EntityRead):
    """Progress note on a demand."""
    demand_id: str
    message: str
    author_id: Optional[str] = Field(None)


class DemandWithUpdates(DemandRead):
    """Demand together with its updates, newest first."""
    updates: list[DemandUpdateRead] = Field(default_factory=list)


class StatusCount(BaseModel):
    """Number of demands with a given status label."""
    status: str
    count: int = Field(..., ge=0)
