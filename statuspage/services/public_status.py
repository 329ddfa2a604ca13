"""
Public Status Reader
====================

Anonymous read path for an organization's status page, addressed by slug.
Shapes match the real-time payloads so viewers can merge stream events
into the page by id.
"""

from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from statuspage.core.exceptions import OrganizationNotFoundError
from statuspage.core.logging import get_logger, log_execution_time
from statuspage.models.organization import Organization
from statuspage.schemas.incident import IncidentRead
from statuspage.schemas.organization import OrganizationPublic, PublicStatusPage, StatusSummary
from statuspage.schemas.service import ServiceRead
from statuspage.services.incident_lifecycle import IncidentLifecycle
from statuspage.services.service_lifecycle import ServiceLifecycle
from statuspage.services.status_aggregator import summarize

logger = get_logger(__name__)


class PublicStatusReader:
    def __init__(self, db: Session):
        self.db = db

    def organization(self, slug: str) -> Organization:
        org = self.db.scalars(
            select(Organization).where(Organization.slug == slug)
        ).first()
        if org is None:
            raise OrganizationNotFoundError(slug)
        return org

    def get_organization(self, slug: str) -> OrganizationPublic:
        return OrganizationPublic.model_validate(self.organization(slug))

    def services(self, slug: str) -> List[ServiceRead]:
        org = self.organization(slug)
        return ServiceLifecycle(self.db).list_for_organization(org.id)

    def incidents(self, slug: str) -> List[IncidentRead]:
        org = self.organization(slug)
        return IncidentLifecycle(self.db).list_for_organization(org.id)

    def summary(self, slug: str) -> StatusSummary:
        org = self.organization(slug)
        return summarize(
            ServiceLifecycle(self.db).list_for_organization(org.id),
            IncidentLifecycle(self.db).list_for_organization(org.id),
        )

    @log_execution_time(logger, "public_page_build")
    def page(self, slug: str) -> PublicStatusPage:
        org = self.organization(slug)
        services = ServiceLifecycle(self.db).list_for_organization(org.id)
        incidents = IncidentLifecycle(self.db).list_for_organization(org.id)
        return PublicStatusPage(
            organization=OrganizationPublic.model_validate(org),
            summary=summarize(services, incidents),
            services=services,
            incidents=incidents,
        )
