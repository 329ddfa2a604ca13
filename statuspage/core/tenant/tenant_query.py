"""
Tenant Query Utilities Module
=============================

Provides utilities for multi-tenant data isolation.

Every read and write performed by the mutation engine goes through a
TenantQuery so rows are fetched by ``(id, organization_id)``. A row owned
by another organization is indistinguishable from a missing row.

Security:
- Enforces tenant isolation at the query level
- Logs cross-tenant lookups
"""

from typing import Generic, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from statuspage.core.logging import get_logger

# Initialize logger
logger = get_logger(__name__)

# Generic type for models with organization_id
T = TypeVar("T")


class TenantQuery(Generic[T]):
    """
    Helper class for tenant-isolated database queries.

    Usage:
        services = TenantQuery(db, Service, organization_id).all()
        incident = TenantQuery(db, Incident, organization_id).get_by_id(incident_id)
    """

    def __init__(self, db: Session, model: Type[T], organization_id: UUID):
        self.db = db
        self.model = model
        self.organization_id = organization_id

    def statement(self) -> Select:
        """SELECT for the model restricted to this organization."""
        return select(self.model).where(
            self.model.organization_id == self.organization_id
        )

    def all(self, *order_by) -> list[T]:
        stmt = self.statement()
        if order_by:
            stmt = stmt.order_by(*order_by)
        return list(self.db.scalars(stmt).unique().all())

    def get_by_id(self, resource_id: UUID, refresh: bool = False) -> Optional[T]:
        """
        Get a resource by id within this organization.

        Args:
            resource_id: Resource UUID
            refresh: Overwrite any identity-map copy with the stored row

        Returns:
            The row, or None when it does not exist or belongs to
            another organization
        """
        resource = self.db.get(
            self.model,
            resource_id,
            populate_existing=refresh,
        )
        if resource is None:
            return None

        if resource.organization_id != self.organization_id:
            logger.warning(
                "tenant_isolation_violation",
                resource=self.model.__tablename__,
                resource_id=str(resource_id),
                owner_tenant=str(resource.organization_id),
                requested_tenant=str(self.organization_id),
            )
            return None

        return resource

    def ids_owned(self, resource_ids) -> set[UUID]:
        """Subset of ``resource_ids`` that belong to this organization."""
        if not resource_ids:
            return set()
        stmt = select(self.model.id).where(
            self.model.organization_id == self.organization_id,
            self.model.id.in_(list(resource_ids)),
        )
        return set(self.db.scalars(stmt).all())
