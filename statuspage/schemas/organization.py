"""
Organization Schemas Module
===========================

Pydantic models for the public status page read path.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from statuspage.core.enums import OverallStatus, ServiceStatus
from statuspage.schemas.incident import IncidentRead
from statuspage.schemas.service import ServiceRead


class OrganizationPublic(BaseModel):
    """Organization as shown to anonymous status page viewers."""

    id: UUID = Field(..., description="Organization UUID")
    name: str = Field(..., description="Organization name")
    slug: str = Field(..., description="Public URL key")
    description: Optional[str] = Field(default=None)
    created_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "name": "Acme Corporation",
                "slug": "acme",
                "description": "Acme platform status",
                "created_at": "2024-01-01T00:00:00Z"
            }
        }
    )


class StatusSummary(BaseModel):
    """Aggregate status of an organization, derived on every read."""

    overall_status: OverallStatus
    worst_service_status: Optional[ServiceStatus] = None
    service_count: int
    active_incident_count: int


class PublicStatusPage(BaseModel):
    organization: OrganizationPublic
    summary: StatusSummary
    services: List[ServiceRead]
    incidents: List[IncidentRead]
