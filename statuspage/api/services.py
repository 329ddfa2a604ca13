"""
Service Routes
==============

Staff endpoints for managing the services shown on the status page.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from statuspage.api.deps import get_service_lifecycle
from statuspage.core.dependencies.auth import get_current_identity
from statuspage.core.dependencies.rbac import require_admin, require_writer
from statuspage.schemas.auth import ErrorResponse, StaffIdentity
from statuspage.schemas.incident import DeletedEntity
from statuspage.schemas.service import ServiceCreate, ServiceRead, ServiceUpdate
from statuspage.services.service_lifecycle import ServiceLifecycle

router = APIRouter(
    prefix="/services",
    tags=["Services"],
    responses={
        401: {"model": ErrorResponse, "description": "Authentication failed"},
        403: {"model": ErrorResponse, "description": "Role not authorized"},
        404: {"model": ErrorResponse, "description": "Service not found"},
    },
)


@router.post("", response_model=ServiceRead, status_code=status.HTTP_201_CREATED)
def create_service(
    payload: ServiceCreate,
    identity: StaffIdentity = Depends(require_writer),
    lifecycle: ServiceLifecycle = Depends(get_service_lifecycle),
):
    return lifecycle.create(identity.organization_id, **payload.model_dump())


@router.get("", response_model=List[ServiceRead])
def list_services(
    identity: StaffIdentity = Depends(get_current_identity),
    lifecycle: ServiceLifecycle = Depends(get_service_lifecycle),
):
    return lifecycle.list_for_organization(identity.organization_id)


@router.get("/{service_id}", response_model=ServiceRead)
def get_service(
    service_id: UUID,
    identity: StaffIdentity = Depends(get_current_identity),
    lifecycle: ServiceLifecycle = Depends(get_service_lifecycle),
):
    return lifecycle.get(service_id, identity.organization_id)


@router.put("/{service_id}", response_model=ServiceRead)
@router.patch("/{service_id}", response_model=ServiceRead)
def update_service(
    service_id: UUID,
    payload: ServiceUpdate,
    identity: StaffIdentity = Depends(require_writer),
    lifecycle: ServiceLifecycle = Depends(get_service_lifecycle),
):
    return lifecycle.update(
        service_id,
        payload.model_dump(exclude_unset=True),
        identity.organization_id,
    )


@router.delete("/{service_id}", response_model=DeletedEntity)
def delete_service(
    service_id: UUID,
    identity: StaffIdentity = Depends(require_admin),
    lifecycle: ServiceLifecycle = Depends(get_service_lifecycle),
):
    return lifecycle.delete(service_id, identity.organization_id)
