"""
Real-time Event Schemas
=======================

One variant per event type emitted after a committed mutation. Each event
knows the tenant topic it is addressed to and renders the JSON payload
sent over the wire. Created/Updated events carry the full entity;
Deleted events carry only ``{id, organization_id}``.
"""

from typing import Any, Dict, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from statuspage.core.enums import EventType
from statuspage.schemas.incident import DeletedEntity, IncidentRead
from statuspage.schemas.service import ServiceRead


def topic_for_organization(organization_id) -> str:
    """Name of the broadcast topic for an organization."""
    return f"organization-{organization_id}"


class RealtimeEvent(BaseModel):
    """Base for every broadcast event."""

    organization_id: UUID

    model_config = ConfigDict(frozen=True)

    @property
    def topic(self) -> str:
        return topic_for_organization(self.organization_id)

    @property
    def name(self) -> str:
        return self.type.value  # type: ignore[attr-defined]

    def wire_payload(self) -> Dict[str, Any]:
        raise NotImplementedError


class IncidentCreated(RealtimeEvent):
    type: Literal[EventType.INCIDENT_CREATED] = EventType.INCIDENT_CREATED
    incident: IncidentRead

    def wire_payload(self) -> Dict[str, Any]:
        return self.incident.model_dump(mode="json")


class IncidentUpdated(RealtimeEvent):
    type: Literal[EventType.INCIDENT_UPDATED] = EventType.INCIDENT_UPDATED
    incident: IncidentRead

    def wire_payload(self) -> Dict[str, Any]:
        return self.incident.model_dump(mode="json")


class IncidentDeleted(RealtimeEvent):
    type: Literal[EventType.INCIDENT_DELETED] = EventType.INCIDENT_DELETED
    deleted: DeletedEntity

    def wire_payload(self) -> Dict[str, Any]:
        return self.deleted.model_dump(mode="json")


class ServiceCreated(RealtimeEvent):
    type: Literal[EventType.SERVICE_CREATED] = EventType.SERVICE_CREATED
    service: ServiceRead

    def wire_payload(self) -> Dict[str, Any]:
        return self.service.model_dump(mode="json")


class ServiceUpdated(RealtimeEvent):
    type: Literal[EventType.SERVICE_UPDATED] = EventType.SERVICE_UPDATED
    service: ServiceRead

    def wire_payload(self) -> Dict[str, Any]:
        return self.service.model_dump(mode="json")


class ServiceDeleted(RealtimeEvent):
    type: Literal[EventType.SERVICE_DELETED] = EventType.SERVICE_DELETED
    deleted: DeletedEntity

    def wire_payload(self) -> Dict[str, Any]:
        return self.deleted.model_dump(mode="json")
