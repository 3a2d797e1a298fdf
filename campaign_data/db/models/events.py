from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, Text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from campaign_data.db.base import Base, UUIDPkMixin, TimestampMixin, TenantMixin


class Event(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Scheduled campaign event."""
    __tablename__ = "events"

    title: Mapped[str] = mapped_column(Text, nullable=False)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    location: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default="scheduled")
    tags: Mapped[Optional[list[str]]] = mapped_column(ARRAY(Text), nullable=True)
