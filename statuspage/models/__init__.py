"""
Model Package Initialization
============================

Ensures models are properly registered when imported by the application.

All SQLAlchemy ORM models are exported from this module.

Usage:
    from statuspage.models import Incident, Service, Organization
"""

from .organization import Organization
from .user import User
from .role_enum import Role
from .service import Service
from .incident import Incident, IncidentUpdate, incident_services

__all__ = [
    "Organization",
    "User",
    "Role",
    "Service",
    "Incident",
    "IncidentUpdate",
    "incident_services",
]
