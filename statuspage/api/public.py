"""
Public Status Routes
====================

Unauthenticated read endpoints backing an organization's public status
page. Organizations are addressed by slug.
"""

from typing import List

from fastapi import APIRouter, Depends

from statuspage.api.deps import get_public_reader
from statuspage.schemas.auth import ErrorResponse
from statuspage.schemas.incident import IncidentRead
from statuspage.schemas.organization import OrganizationPublic, PublicStatusPage, StatusSummary
from statuspage.schemas.service import ServiceRead
from statuspage.services.public_status import PublicStatusReader

router = APIRouter(
    prefix="/organizations/public",
    tags=["Public"],
    responses={404: {"model": ErrorResponse, "description": "Organization not found"}},
)


@router.get("/{slug}", response_model=OrganizationPublic)
def get_public_organization(slug: str, reader: PublicStatusReader = Depends(get_public_reader)):
    return reader.get_organization(slug)


@router.get("/{slug}/services", response_model=List[ServiceRead])
def get_public_services(slug: str, reader: PublicStatusReader = Depends(get_public_reader)):
    return reader.services(slug)


@router.get("/{slug}/incidents", response_model=List[IncidentRead])
def get_public_incidents(slug: str, reader: PublicStatusReader = Depends(get_public_reader)):
    return reader.incidents(slug)


@router.get("/{slug}/status", response_model=StatusSummary)
def get_public_status(slug: str, reader: PublicStatusReader = Depends(get_public_reader)):
    return reader.summary(slug)


@router.get("/{slug}/page", response_model=PublicStatusPage)
def get_public_page(slug: str, reader: PublicStatusReader = Depends(get_public_reader)):
    return reader.page(slug)
