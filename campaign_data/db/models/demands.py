from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Text
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from campaign_data.db.base import Base, UUIDPkMixin, TimestampMixin, TenantMixin


class Demand(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Request raised by a constituent and tracked until resolution."""
    __tablename__ = "demands"

    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    priority: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    requester_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    assignee_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[Optional[list[str]]] = mapped_column(ARRAY(Text), nullable=True)


class DemandUpdate(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Progress note appended to a demand."""
    __tablename__ = "demand_updates"

    demand_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("demands.id", ondelete="CASCADE"), nullable=False, index=True
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    author_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
