"""
Incident Schemas Module
=======================

Pydantic models for incident request validation and for the fully
rehydrated incident shape (with its audit log and affected services)
used by HTTP responses, public reads and real-time events.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from statuspage.core.enums import IncidentSeverity, IncidentStatus
from statuspage.schemas.service import ServiceRead


def _check_components(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return value
    cleaned = [item.strip() for item in value]
    if any(not item for item in cleaned):
        raise ValueError("Affected component labels must be non-empty")
    return cleaned


# ==========================
# Request Schemas
# ==========================

class IncidentCreate(BaseModel):
    """Schema for reporting a new incident or scheduling maintenance."""

    title: str = Field(..., min_length=1, max_length=255, description="Incident title")
    description: str = Field(..., min_length=1, description="What is happening")
    status: IncidentStatus = Field(..., description="Initial lifecycle status")
    severity: IncidentSeverity = Field(default=IncidentSeverity.MEDIUM)
    service_ids: List[UUID] = Field(
        default_factory=list,
        description="Services of the same organization affected by this incident"
    )
    components_affected: List[str] = Field(
        default_factory=list,
        description="Free-text component labels"
    )
    scheduled_at: Optional[datetime] = Field(
        default=None,
        description="Start of scheduled maintenance"
    )

    check_components = field_validator("components_affected")(_check_components)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "API slow",
                "description": "Elevated latency on API requests",
                "status": "investigating",
                "severity": "high",
                "service_ids": ["550e8400-e29b-41d4-a716-446655440000"]
            }
        }
    )


class IncidentPatch(BaseModel):
    """
    Partial incident update.

    Only fields present in the request are applied. ``service_ids``, when
    present, replaces the affected-service set wholesale (an empty list
    clears it). ``update_description`` overrides the generated audit text.
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, min_length=1)
    status: Optional[IncidentStatus] = None
    severity: Optional[IncidentSeverity] = None
    service_ids: Optional[List[UUID]] = None
    components_affected: Optional[List[str]] = None
    scheduled_at: Optional[datetime] = None
    update_description: Optional[str] = Field(default=None, min_length=1)

    check_components = field_validator("components_affected")(_check_components)


class IncidentUpdateCreate(BaseModel):
    """Schema for appending a progress update to an incident."""

    description: str = Field(..., min_length=1)
    status: IncidentStatus


# ==========================
# Response Schemas
# ==========================

class IncidentUpdateRead(BaseModel):
    id: UUID
    incident_id: UUID
    user_id: Optional[UUID] = None
    description: str
    status: IncidentStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class IncidentRead(BaseModel):
    id: UUID
    organization_id: UUID
    title: str
    description: str
    status: IncidentStatus
    severity: IncidentSeverity
    components_affected: List[str] = Field(default_factory=list)
    scheduled_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    user_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime
    updates: List[IncidentUpdateRead] = Field(default_factory=list)
    affected_services: List[ServiceRead] = Field(
        default_factory=list,
        validation_alias="services",
    )

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class AddUpdateResult(BaseModel):
    update: IncidentUpdateRead
    incident: IncidentRead


class DeletedEntity(BaseModel):
    id: UUID
    organization_id: UUID
