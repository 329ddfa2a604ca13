"""
Schemas Package Initialization
==============================

Exports all Pydantic schemas for the application.

Usage:
    from statuspage.schemas import IncidentRead, ServiceRead, LoginRequest
"""

# Auth schemas
from statuspage.schemas.auth import (
    LoginRequest,
    TokenResponse,
    TokenPayload,
    StaffIdentity,
    CurrentUserResponse,
    ErrorResponse,
)

# Service schemas
from statuspage.schemas.service import (
    ServiceCreate,
    ServiceUpdate,
    ServiceRead,
)

# Incident schemas
from statuspage.schemas.incident import (
    IncidentCreate,
    IncidentPatch,
    IncidentUpdateCreate,
    IncidentUpdateRead,
    IncidentRead,
    AddUpdateResult,
    DeletedEntity,
)

# Organization schemas
from statuspage.schemas.organization import (
    OrganizationPublic,
    StatusSummary,
    PublicStatusPage,
)

__all__ = [
    # Auth
    "LoginRequest",
    "TokenResponse",
    "TokenPayload",
    "StaffIdentity",
    "CurrentUserResponse",
    "ErrorResponse",
    # Service
    "ServiceCreate",
    "ServiceUpdate",
    "ServiceRead",
    # Incident
    "IncidentCreate",
    "IncidentPatch",
    "IncidentUpdateCreate",
    "IncidentUpdateRead",
    "IncidentRead",
    "AddUpdateResult",
    "DeletedEntity",
    # Organization
    "OrganizationPublic",
    "StatusSummary",
    "PublicStatusPage",
]
