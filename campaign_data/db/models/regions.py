from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import BigInteger, CheckConstraint, Float, ForeignKey, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from campaign_data.db.base import Base, UUIDPkMixin, TimestampMixin, TenantMixin

DEFAULT_REGION_COLOR = "#0F509C"


class Coordinator(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Person responsible for one or more regions."""
    __tablename__ = "coordinators"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class Region(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """
    Map region grouping municipalities.

    Municipalities point at their region through municipalities.region_id;
    the region itself keeps no list of members.
    """
    __tablename__ = "regions"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_regions_tenant_name"),
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    color: Mapped[str] = mapped_column(Text, nullable=False, default=DEFAULT_REGION_COLOR)
    coordinator_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), ForeignKey("coordinators.id", ondelete="SET NULL"), nullable=True
    )


class Municipality(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Municipality belonging to exactly one region."""
    __tablename__ = "municipalities"
    __table_args__ = (
        CheckConstraint("population >= 0", name="population_non_negative"),
        CheckConstraint("area_km2 >= 0", name="area_non_negative"),
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    region_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("regions.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    population: Mapped[int] = mapped_column(BigInteger, nullable=False)
    area_km2: Mapped[float] = mapped_column(Float, nullable=False)
    geometry: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)
