from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from helpdesk.db.session import get_db
from helpdesk.models.tenancy import Organization
from helpdesk.schemas.tenancy import OrganizationCreate, OrganizationOut, OrganizationUpdate
from helpdesk.security.context import IdentityContext
from helpdesk.security.dependencies import get_identity
from helpdesk.services import organizations as service

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.get("", response_model=list[OrganizationOut])
def list_organizations(
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> list[Organization]:
    return service.list_organizations(db, identity)


@router.get("/{organization_id}", response_model=OrganizationOut)
def get_organization(
    organization_id: int,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> Organization:
    return service.get_organization(db, identity, organization_id)


@router.post("", response_model=OrganizationOut, status_code=status.HTTP_201_CREATED)
def create_organization(
    payload: OrganizationCreate,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> Organization:
    return service.create_organization(db, identity, payload)


@router.put("/{organization_id}", response_model=OrganizationOut)
def update_organization(
    organization_id: int,
    payload: OrganizationUpdate,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> Organization:
    return service.update_organization(db, identity, organization_id, payload)
