"""
Incident Lifecycle Service
==========================

Transactional mutation engine for incidents.

Every operation:
- Resolves the incident by ``(id, organization_id)`` before any write;
  foreign and missing incidents both raise IncidentNotFoundError
- Runs as exactly one transaction (incident row, audit log entry and
  service associations commit or roll back together)
- Rehydrates the committed incident (updates + affected services) and
  publishes it to the organization's topic only after commit

Audit log rules:
- create writes the initial entry
- update writes one entry describing the changed fields, or nothing at
  all when nothing changed
- add_update writes the caller's entry verbatim
- resolved_at is stamped on the first transition into ``resolved`` and is
  never cleared or moved afterwards
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from statuspage.core.enums import IncidentSeverity, IncidentStatus
from statuspage.core.exceptions import (
    IncidentNotFoundError,
    MissingFieldError,
    UnknownServiceError,
)
from statuspage.core.logging import get_logger
from statuspage.core.tenant.tenant_query import TenantQuery
from statuspage.db.session import storage_errors, transaction
from statuspage.db.types import as_utc, utcnow
from statuspage.models.incident import Incident, IncidentUpdate
from statuspage.models.service import Service
from statuspage.realtime.broadcaster import EventPublisher, publish_safely
from statuspage.schemas.events import IncidentCreated, IncidentDeleted, IncidentUpdated
from statuspage.schemas.incident import (
    AddUpdateResult,
    DeletedEntity,
    IncidentRead,
    IncidentUpdateRead,
)
from statuspage.services.validation import (
    clean_labels,
    coerce_enum,
    coerce_uuid_list,
    require_text,
)

logger = get_logger(__name__)


def initial_update_text(description: str, scheduled_at: Optional[datetime]) -> str:
    if scheduled_at is not None:
        return f"Maintenance scheduled: {description}"
    return f"Incident reported: {description}"


def join_clauses(clauses: List[str]) -> str:
    """``["A", "B"]`` -> ``"A. B."``"""
    return ". ".join(clauses) + "."


class IncidentLifecycle:
    """
    Usage:
        lifecycle = IncidentLifecycle(db, broadcaster)
        incident = lifecycle.create(org_id, user_id, title=..., ...)
    """

    def __init__(self, db: Session, publisher: Optional[EventPublisher] = None):
        self.db = db
        self.publisher = publisher

    # --------------------------
    # Helpers
    # --------------------------

    def _get_owned(self, incident_id: UUID, organization_id: UUID) -> Incident:
        with storage_errors(self.db, "Incident"):
            incident = TenantQuery(self.db, Incident, organization_id).get_by_id(
                incident_id, refresh=True
            )
        if incident is None:
            raise IncidentNotFoundError(str(incident_id))
        return incident

    def _owned_services(self, organization_id: UUID, service_ids: List[UUID]) -> List[Service]:
        """Load the services, rejecting any id not owned by the organization."""
        if not service_ids:
            return []
        services = TenantQuery(self.db, Service, organization_id)
        with storage_errors(self.db, "Service"):
            owned = services.ids_owned(service_ids)
            missing = [sid for sid in service_ids if sid not in owned]
            if missing:
                raise UnknownServiceError(missing)
            return [services.get_by_id(sid) for sid in service_ids]

    def _rehydrate(self, incident: Incident) -> IncidentRead:
        self.db.refresh(incident)
        return IncidentRead.model_validate(incident)

    # --------------------------
    # Reads
    # --------------------------

    def get(self, incident_id: UUID, organization_id: UUID) -> IncidentRead:
        return IncidentRead.model_validate(self._get_owned(incident_id, organization_id))

    def list_for_organization(self, organization_id: UUID) -> List[IncidentRead]:
        stmt = (
            TenantQuery(self.db, Incident, organization_id)
            .statement()
            .order_by(Incident.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return [IncidentRead.model_validate(i) for i in self.db.scalars(stmt).all()]

    # --------------------------
    # Mutations
    # --------------------------

    def create(
        self,
        organization_id: UUID,
        author_id: Optional[UUID],
        *,
        title: str,
        description: str,
        status: Any,
        severity: Any = IncidentSeverity.MEDIUM,
        service_ids: Optional[Iterable[Any]] = None,
        components_affected: Optional[Iterable[str]] = None,
        scheduled_at: Optional[datetime] = None,
    ) -> IncidentRead:
        """
        Report a new incident (or schedule maintenance).

        Writes the incident, its service associations and the initial
        audit entry in one transaction, then publishes ``incidentCreated``.

        Raises:
            ValidationError: missing/invalid fields or a service id that
                does not belong to the organization
        """
        if not organization_id:
            raise MissingFieldError("organization_id")
        title = require_text("title", title)
        description = require_text("description", description)
        status = coerce_enum(IncidentStatus, "status", status)
        severity = coerce_enum(IncidentSeverity, "severity", severity or IncidentSeverity.MEDIUM)
        components = clean_labels("components_affected", components_affected)
        ids = coerce_uuid_list("service_ids", service_ids)
        scheduled_at = as_utc(scheduled_at)

        services = self._owned_services(organization_id, ids)
        now = utcnow()

        incident = Incident(
            organization_id=organization_id,
            title=title,
            description=description,
            status=status.value,
            severity=severity.value,
            components_affected=components,
            scheduled_at=scheduled_at,
            resolved_at=now if status == IncidentStatus.RESOLVED else None,
            user_id=author_id,
            created_at=now,
            updated_at=now,
        )
        incident.services = services
        incident.updates.append(
            IncidentUpdate(
                user_id=author_id,
                description=initial_update_text(description, scheduled_at),
                status=status.value,
                created_at=now,
            )
        )

        with transaction(self.db, "Incident"):
            self.db.add(incident)

        read = self._rehydrate(incident)
        logger.info(
            "incident_created",
            incident_id=str(read.id),
            tenant_id=str(organization_id),
            status=status.value,
            service_count=len(services),
        )
        publish_safely(
            self.publisher,
            IncidentCreated(organization_id=organization_id, incident=read),
        )
        return read

    def update(
        self,
        incident_id: UUID,
        changes: Mapping[str, Any],
        author_id: Optional[UUID],
        organization_id: UUID,
    ) -> IncidentRead:
        """
        Apply a partial update.

        ``changes`` holds only the fields the caller supplied. Supplying
        ``service_ids`` (even unchanged or empty) replaces the affected
        service set and always produces an audit entry. When no field
        differs and no service set was supplied the incident is returned
        untouched and nothing is published.
        """
        incident = self._get_owned(incident_id, organization_id)
        changes = dict(changes)
        explicit_text = changes.pop("update_description", None)
        raw_service_ids = changes.pop("service_ids", None)

        assignments: Dict[str, Any] = {}
        clauses: List[str] = []

        if changes.get("title") is not None:
            title = require_text("title", changes["title"])
            if title != incident.title:
                assignments["title"] = title
                clauses.append(f'Title changed to "{title}"')

        if changes.get("description") is not None:
            description = require_text("description", changes["description"])
            if description != incident.description:
                assignments["description"] = description
                clauses.append("Description updated")

        new_status = None
        if changes.get("status") is not None:
            new_status = coerce_enum(IncidentStatus, "status", changes["status"])
            if new_status.value != incident.status:
                assignments["status"] = new_status.value
                clauses.append(f'Status changed to "{new_status.value}"')

        if changes.get("severity") is not None:
            severity = coerce_enum(IncidentSeverity, "severity", changes["severity"])
            if severity.value != incident.severity:
                assignments["severity"] = severity.value
                clauses.append(f'Severity changed to "{severity.value}"')

        if changes.get("components_affected") is not None:
            components = clean_labels("components_affected", changes["components_affected"])
            if components != list(incident.components_affected or []):
                assignments["components_affected"] = components
                clauses.append("Affected components updated")

        scheduled_at = as_utc(changes.get("scheduled_at"))
        if "scheduled_at" in changes and scheduled_at != incident.scheduled_at:
            assignments["scheduled_at"] = scheduled_at
            clauses.append("Scheduled time updated")

        now = utcnow()
        if new_status == IncidentStatus.RESOLVED and incident.resolved_at is None:
            assignments["resolved_at"] = now
            clauses.append("Marked as resolved")

        services = None
        if raw_service_ids is not None:
            ids = coerce_uuid_list("service_ids", raw_service_ids)
            services = self._owned_services(organization_id, ids)
            clauses.append("Affected services updated" if services else "Affected services removed")

        if not clauses:
            logger.debug("incident_update_noop", incident_id=str(incident_id))
            return IncidentRead.model_validate(incident)

        with transaction(self.db, "Incident"):
            for field, value in assignments.items():
                setattr(incident, field, value)
            if services is not None:
                incident.services = services
            incident.updated_at = now
            incident.updates.append(
                IncidentUpdate(
                    user_id=author_id,
                    description=explicit_text or join_clauses(clauses),
                    status=incident.status,
                    created_at=now,
                )
            )

        read = self._rehydrate(incident)
        logger.info(
            "incident_updated",
            incident_id=str(incident_id),
            tenant_id=str(organization_id),
            fields=sorted(assignments),
            services_replaced=services is not None,
        )
        publish_safely(
            self.publisher,
            IncidentUpdated(organization_id=organization_id, incident=read),
        )
        return read

    def add_update(
        self,
        incident_id: UUID,
        description: str,
        status: Any,
        author_id: Optional[UUID],
        organization_id: UUID,
    ) -> AddUpdateResult:
        """
        Append a progress update and move the incident to its status.

        Publishes exactly one ``incidentUpdated`` carrying the full incident.
        """
        incident = self._get_owned(incident_id, organization_id)
        description = require_text("description", description)
        status = coerce_enum(IncidentStatus, "status", status)
        now = utcnow()

        entry = IncidentUpdate(
            user_id=author_id,
            description=description,
            status=status.value,
            created_at=now,
        )

        with transaction(self.db, "Incident"):
            incident.status = status.value
            if status == IncidentStatus.RESOLVED and incident.resolved_at is None:
                incident.resolved_at = now
            incident.updated_at = now
            incident.updates.append(entry)

        read = self._rehydrate(incident)
        logger.info(
            "incident_update_added",
            incident_id=str(incident_id),
            tenant_id=str(organization_id),
            status=status.value,
        )
        publish_safely(
            self.publisher,
            IncidentUpdated(organization_id=organization_id, incident=read),
        )
        return AddUpdateResult(
            update=IncidentUpdateRead.model_validate(entry),
            incident=read,
        )

    def delete(self, incident_id: UUID, organization_id: UUID) -> DeletedEntity:
        """
        Delete an incident with its audit log and service associations.

        Publishes ``incidentDeleted`` with ``{id, organization_id}``.
        """
        incident = self._get_owned(incident_id, organization_id)

        with transaction(self.db, "Incident"):
            incident.services.clear()
            self.db.flush()
            self.db.delete(incident)

        deleted = DeletedEntity(id=incident_id, organization_id=organization_id)
        logger.info(
            "incident_deleted",
            incident_id=str(incident_id),
            tenant_id=str(organization_id),
        )
        publish_safely(
            self.publisher,
            IncidentDeleted(organization_id=organization_id, deleted=deleted),
        )
        return deleted
