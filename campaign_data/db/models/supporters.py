from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import Boolean, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from campaign_data.db.base import Base, UUIDPkMixin, TimestampMixin, TenantMixin


class Supporter(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Constituent who supports the campaign."""
    __tablename__ = "supporters"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # {"street": ..., "city": ..., "state": ..., "postal_code": ...}
    address: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)
    engagement_level: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[Optional[str]] = mapped_column(Text, nullable=True, default="active")
    tags: Mapped[Optional[list[str]]] = mapped_column(ARRAY(Text), nullable=True)
    leader_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class User(UUIDPkMixin, TenantMixin, TimestampMixin, Base):
    """Application user profile within a tenant. Credentials live in the auth system."""
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
    )

    email: Mapped[str] = mapped_column(Text, nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    role: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
