"""
Service Model
=============

A component of an organization's product whose operational state is shown
on the status page (e.g. "API", "Dashboard").

Database Indexes:
- Primary key: id (UUID)
- Index: organization_id
- Composite index: (organization_id, display_order, name) for listing
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship, Mapped, mapped_column

from statuspage.core.enums import ServiceStatus
from statuspage.db.base import Base
from statuspage.db.types import UTCDateTime, utcnow

if TYPE_CHECKING:
    from statuspage.models.organization import Organization


class Service(Base):
    __tablename__ = "services"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ServiceStatus.OPERATIONAL.value,
    )

    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Optimistic concurrency counter, bumped by SQLAlchemy on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    organization: Mapped["Organization"] = relationship(
        "Organization",
        back_populates="services",
    )

    __table_args__ = (
        Index("ix_services_org_order", "organization_id", "display_order", "name"),
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, name={self.name}, status={self.status})>"
