"""
Incident Models
===============

Incident, its append-only audit log (IncidentUpdate) and the
incident/service association table.

Lifecycle rules enforced by ``statuspage.services.incident_lifecycle``:
- Every incident has at least one IncidentUpdate (written at creation)
- IncidentUpdate rows are never edited; they are removed only together
  with their incident
- resolved_at is set on the first transition into ``resolved`` and is
  never cleared afterwards
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    JSON,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from statuspage.core.enums import IncidentSeverity
from statuspage.db.base import Base
from statuspage.db.types import UTCDateTime, utcnow
from statuspage.models.service import Service

if TYPE_CHECKING:
    from statuspage.models.organization import Organization


# ==========================
# Association
# ==========================

incident_services = Table(
    "incident_services",
    Base.metadata,
    Column(
        "incident_id",
        Uuid,
        ForeignKey("incidents.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "service_id",
        Uuid,
        ForeignKey("services.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class Incident(Base):
    __tablename__ = "incidents"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[str] = mapped_column(String(32), nullable=False)
    severity: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=IncidentSeverity.MEDIUM.value,
    )

    components_affected: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    scheduled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Reporter
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

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

    # ==========================
    # Relationships
    # ==========================
    organization: Mapped["Organization"] = relationship(
        "Organization",
        back_populates="incidents",
    )

    updates: Mapped[List["IncidentUpdate"]] = relationship(
        "IncidentUpdate",
        back_populates="incident",
        order_by="IncidentUpdate.created_at",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    services: Mapped[List[Service]] = relationship(
        Service,
        secondary=incident_services,
        order_by=(Service.display_order, Service.name),
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_incidents_org_created", "organization_id", "created_at"),
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Incident(id={self.id}, title={self.title}, status={self.status})>"


class IncidentUpdate(Base):
    """One immutable entry in an incident's audit log."""

    __tablename__ = "incident_updates"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    incident_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("incidents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Author
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Snapshot of the incident status when this entry was written
    status: Mapped[str] = mapped_column(String(32), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=utcnow,
        nullable=False,
    )

    incident: Mapped["Incident"] = relationship("Incident", back_populates="updates")

    def __repr__(self) -> str:
        return f"<IncidentUpdate(id={self.id}, status={self.status})>"
