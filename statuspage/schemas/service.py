"""
Service Schemas Module
======================

Pydantic models for service request validation and for the service shape
shared by HTTP responses and real-time events.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from statuspage.core.enums import ServiceStatus


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Service name")
    description: Optional[str] = Field(default=None, description="Service description")
    status: ServiceStatus = Field(
        default=ServiceStatus.OPERATIONAL,
        description="Initial operational status"
    )
    display_order: int = Field(default=0, ge=0, description="Position on the status page")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "API",
                "description": "Public REST API",
                "status": "operational",
                "display_order": 1
            }
        }
    )


class ServiceUpdate(BaseModel):
    """Partial update; only supplied fields are considered."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[ServiceStatus] = None
    display_order: Optional[int] = Field(default=None, ge=0)


class ServiceRead(BaseModel):
    id: UUID
    organization_id: UUID
    name: str
    description: Optional[str] = None
    status: ServiceStatus
    display_order: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
