"""
User Model
==========

Staff accounts. Registration and password management live outside this
service; the model exists so credentials can be verified and mutations
attributed to an author.

Security Features:
- Tenant binding (organization_id); a user without one cannot act as staff
- Token version for JWT invalidation
- Enum-based role enforcement
- Soft disable via is_active flag

Database Indexes:
- Primary key: id (UUID)
- Unique index: email
- Index: organization_id
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    String,
    Boolean,
    Integer,
    ForeignKey,
    Index,
    Uuid,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from statuspage.db.base import Base
from statuspage.db.types import UTCDateTime, utcnow
from statuspage.models.role_enum import Role

if TYPE_CHECKING:
    from statuspage.models.organization import Organization


class User(Base):
    """
    User entity representing authenticated staff.

    Attributes:
        id: UUID primary key
        organization_id: Tenant the user acts for (nullable until assigned)
        email: Unique email address
        username: Display name
        hashed_password: Argon2 hashed password
        role: Staff role (admin, editor, viewer)
        is_active: Account active status
        token_version: JWT version for invalidation
    """

    __tablename__ = "users"

    def __init__(self, **kwargs):
        """Initialize User with Python-level defaults."""
        kwargs.setdefault("role", Role.VIEWER)
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("token_version", 1)
        super().__init__(**kwargs)

    # ==========================
    # Primary Key
    # ==========================
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    # ==========================
    # Tenant Binding
    # ==========================
    organization_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    organization: Mapped[Optional["Organization"]] = relationship(
        "Organization",
        back_populates="users",
    )

    # ==========================
    # Authentication
    # ==========================
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    username: Mapped[str] = mapped_column(String(100), nullable=False)

    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # ==========================
    # Authorization
    # ==========================
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Role.VIEWER.value,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # JWT Version Control
    token_version: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
    )

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

    __table_args__ = (
        Index("ix_users_role", "role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

    @property
    def role_enum(self) -> Role:
        return Role(self.role.value if isinstance(self.role, Role) else self.role)

    def invalidate_tokens(self) -> None:
        """Invalidate all tokens by incrementing version."""
        self.token_version += 1
