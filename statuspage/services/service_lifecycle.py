"""
Service Lifecycle Service
=========================

Transactional create/update/delete for an organization's services.
Committed changes are published to the organization's topic.
"""

from typing import Any, Dict, List, Mapping, Optional
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.orm import Session

from statuspage.core.enums import ServiceStatus
from statuspage.core.exceptions import MissingFieldError, ServiceNotFoundError, ValidationError
from statuspage.core.logging import get_logger
from statuspage.core.tenant.tenant_query import TenantQuery
from statuspage.db.session import storage_errors, transaction
from statuspage.db.types import utcnow
from statuspage.models.incident import incident_services
from statuspage.models.service import Service
from statuspage.realtime.broadcaster import EventPublisher, publish_safely
from statuspage.schemas.events import ServiceCreated, ServiceDeleted, ServiceUpdated
from statuspage.schemas.incident import DeletedEntity
from statuspage.schemas.service import ServiceRead
from statuspage.services.validation import coerce_enum, require_text

logger = get_logger(__name__)


def _check_order(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(
            "display_order must be a non-negative integer",
            details={"field": "display_order"},
        )
    return value


class ServiceLifecycle:
    def __init__(self, db: Session, publisher: Optional[EventPublisher] = None):
        self.db = db
        self.publisher = publisher

    def _get_owned(self, service_id: UUID, organization_id: UUID) -> Service:
        with storage_errors(self.db, "Service"):
            service = TenantQuery(self.db, Service, organization_id).get_by_id(
                service_id, refresh=True
            )
        if service is None:
            raise ServiceNotFoundError(str(service_id))
        return service

    # --------------------------
    # Reads
    # --------------------------

    def get(self, service_id: UUID, organization_id: UUID) -> ServiceRead:
        return ServiceRead.model_validate(self._get_owned(service_id, organization_id))

    def list_for_organization(self, organization_id: UUID) -> List[ServiceRead]:
        stmt = (
            TenantQuery(self.db, Service, organization_id)
            .statement()
            .order_by(Service.display_order, Service.name)
            .execution_options(populate_existing=True)
        )
        return [ServiceRead.model_validate(s) for s in self.db.scalars(stmt).all()]

    # --------------------------
    # Mutations
    # --------------------------

    def create(
        self,
        organization_id: UUID,
        *,
        name: str,
        description: Optional[str] = None,
        status: Any = ServiceStatus.OPERATIONAL,
        display_order: int = 0,
    ) -> ServiceRead:
        if not organization_id:
            raise MissingFieldError("organization_id")
        name = require_text("name", name)
        status = coerce_enum(ServiceStatus, "status", status or ServiceStatus.OPERATIONAL)
        display_order = _check_order(display_order if display_order is not None else 0)

        now = utcnow()
        service = Service(
            organization_id=organization_id,
            name=name,
            description=description,
            status=status.value,
            display_order=display_order,
            created_at=now,
            updated_at=now,
        )

        with transaction(self.db, "Service"):
            self.db.add(service)

        read = ServiceRead.model_validate(service)
        logger.info(
            "service_created",
            service_id=str(read.id),
            tenant_id=str(organization_id),
            status=status.value,
        )
        publish_safely(self.publisher, ServiceCreated(organization_id=organization_id, service=read))
        return read

    def update(
        self,
        service_id: UUID,
        changes: Mapping[str, Any],
        organization_id: UUID,
    ) -> ServiceRead:
        """
        Apply the supplied fields.

        A field equal to its current value is not a change. When nothing
        changes (including re-setting the current status) the current row
        is returned and nothing is written or published.
        """
        service = self._get_owned(service_id, organization_id)
        assignments: Dict[str, Any] = {}

        if changes.get("name") is not None:
            name = require_text("name", changes["name"])
            if name != service.name:
                assignments["name"] = name

        if "description" in changes and changes["description"] != service.description:
            assignments["description"] = changes["description"]

        if changes.get("status") is not None:
            status = coerce_enum(ServiceStatus, "status", changes["status"])
            if status.value != service.status:
                assignments["status"] = status.value

        if changes.get("display_order") is not None:
            order = _check_order(changes["display_order"])
            if order != service.display_order:
                assignments["display_order"] = order

        if not assignments:
            return ServiceRead.model_validate(service)

        with transaction(self.db, "Service"):
            for field, value in assignments.items():
                setattr(service, field, value)

        read = ServiceRead.model_validate(service)
        logger.info(
            "service_updated",
            service_id=str(service_id),
            tenant_id=str(organization_id),
            fields=sorted(assignments),
            status=read.status.value,
        )
        publish_safely(self.publisher, ServiceUpdated(organization_id=organization_id, service=read))
        return read

    def delete(self, service_id: UUID, organization_id: UUID) -> DeletedEntity:
        """
        Delete a service and every incident association referencing it.

        Incidents themselves are kept; they simply stop listing the service.
        """
        service = self._get_owned(service_id, organization_id)

        with transaction(self.db, "Service"):
            self.db.execute(
                delete(incident_services).where(incident_services.c.service_id == service.id)
            )
            self.db.delete(service)
        # Loaded incidents still hold the removed association in memory
        self.db.expire_all()

        deleted = DeletedEntity(id=service_id, organization_id=organization_id)
        logger.info(
            "service_deleted",
            service_id=str(service_id),
            tenant_id=str(organization_id),
        )
        publish_safely(self.publisher, ServiceDeleted(organization_id=organization_id, deleted=deleted))
        return deleted
