"""
Organization Model
==================

Represents a tenant in the multi-tenant architecture.

Each organization:
- Is isolated from other organizations
- Owns users, services and incidents
- Owns exactly one real-time topic (``organization-<id>``)
- Is addressed publicly by its slug

Database Indexes:
- Primary key: id (UUID)
- Unique index: name
- Unique index: slug
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String, Text, Uuid
from sqlalchemy.orm import relationship, Mapped, mapped_column

from statuspage.db.base import Base
from statuspage.db.types import UTCDateTime, utcnow

if TYPE_CHECKING:
    from statuspage.models.user import User
    from statuspage.models.service import Service
    from statuspage.models.incident import Incident


class Organization(Base):
    """
    Organization Entity (Tenant Root).

    Security Boundary:
        Every service, incident and staff user belongs to exactly one
        organization. Rows are never readable or writable across it.

    Attributes:
        id: UUID primary key
        name: Unique organization name
        slug: Unique public URL key for the status page
        description: Optional free text shown on the status page
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "organizations"

    # ==========================
    # Primary Key
    # ==========================
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # ==========================
    # Organization Info
    # ==========================
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )

    slug: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ==========================
    # Timestamps
    # ==========================
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
    users: Mapped[List["User"]] = relationship(
        "User",
        back_populates="organization",
        lazy="select",
    )

    services: Mapped[List["Service"]] = relationship(
        "Service",
        back_populates="organization",
        lazy="select",
    )

    incidents: Mapped[List["Incident"]] = relationship(
        "Incident",
        back_populates="organization",
        lazy="select",
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, slug={self.slug})>"
