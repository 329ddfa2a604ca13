"""
Incident Routes
===============

Staff endpoints for the incident lifecycle. Every call is scoped to the
caller's organization; the mutation engine re-checks ownership.

Roles:
- any staff member may read
- admin and editor may create, update and post progress updates
- only admin may delete
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from statuspage.api.deps import get_incident_lifecycle
from statuspage.core.dependencies.auth import get_current_identity
from statuspage.core.dependencies.rbac import require_admin, require_writer
from statuspage.schemas.auth import ErrorResponse, StaffIdentity
from statuspage.schemas.incident import (
    AddUpdateResult,
    DeletedEntity,
    IncidentCreate,
    IncidentPatch,
    IncidentRead,
    IncidentUpdateCreate,
)
from statuspage.services.incident_lifecycle import IncidentLifecycle

router = APIRouter(
    prefix="/incidents",
    tags=["Incidents"],
    responses={
        401: {"model": ErrorResponse, "description": "Authentication failed"},
        403: {"model": ErrorResponse, "description": "Role not authorized"},
        404: {"model": ErrorResponse, "description": "Incident not found"},
    },
)


@router.post("", response_model=IncidentRead, status_code=status.HTTP_201_CREATED)
def create_incident(
    payload: IncidentCreate,
    identity: StaffIdentity = Depends(require_writer),
    lifecycle: IncidentLifecycle = Depends(get_incident_lifecycle),
):
    return lifecycle.create(
        identity.organization_id,
        identity.user_id,
        **payload.model_dump(),
    )


@router.get("", response_model=List[IncidentRead])
def list_incidents(
    identity: StaffIdentity = Depends(get_current_identity),
    lifecycle: IncidentLifecycle = Depends(get_incident_lifecycle),
):
    return lifecycle.list_for_organization(identity.organization_id)


@router.get("/{incident_id}", response_model=IncidentRead)
def get_incident(
    incident_id: UUID,
    identity: StaffIdentity = Depends(get_current_identity),
    lifecycle: IncidentLifecycle = Depends(get_incident_lifecycle),
):
    return lifecycle.get(incident_id, identity.organization_id)


@router.put("/{incident_id}", response_model=IncidentRead)
@router.patch("/{incident_id}", response_model=IncidentRead)
def update_incident(
    incident_id: UUID,
    payload: IncidentPatch,
    identity: StaffIdentity = Depends(require_writer),
    lifecycle: IncidentLifecycle = Depends(get_incident_lifecycle),
):
    return lifecycle.update(
        incident_id,
        payload.model_dump(exclude_unset=True),
        identity.user_id,
        identity.organization_id,
    )


@router.post(
    "/{incident_id}/updates",
    response_model=AddUpdateResult,
    status_code=status.HTTP_201_CREATED,
)
def add_incident_update(
    incident_id: UUID,
    payload: IncidentUpdateCreate,
    identity: StaffIdentity = Depends(require_writer),
    lifecycle: IncidentLifecycle = Depends(get_incident_lifecycle),
):
    return lifecycle.add_update(
        incident_id,
        payload.description,
        payload.status,
        identity.user_id,
        identity.organization_id,
    )


@router.delete("/{incident_id}", response_model=DeletedEntity)
def delete_incident(
    incident_id: UUID,
    identity: StaffIdentity = Depends(require_admin),
    lifecycle: IncidentLifecycle = Depends(get_incident_lifecycle),
):
    return lifecycle.delete(incident_id, identity.organization_id)
