from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from helpdesk.db.session import get_db
from helpdesk.models.hour_banks import HourBank, HourBankRequest
from helpdesk.models.tenancy import Organization
from helpdesk.models.tickets import Ticket, TicketPriority, TicketStatus
from helpdesk.schemas.common import Page
from helpdesk.schemas.hour_banks import HourBankOut, HourBankRequestOut, ProcessHourBankRequest
from helpdesk.schemas.tenancy import OrganizationOut
from helpdesk.schemas.tickets import TicketAssign, TicketFilters, TicketOut
from helpdesk.security.context import IdentityContext
from helpdesk.security.decorators import require_system_staff
from helpdesk.security.dependencies import get_identity
from helpdesk.services import client_management as service
from helpdesk.services import hour_banks

router = APIRouter(prefix="/client-management", tags=["client_management"])


@router.get("/organizations", response_model=list[OrganizationOut])
@require_system_staff()
def list_client_organizations(
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> list[Organization]:
    return service.list_client_organizations(db, identity)


@router.get("/organizations/{organization_id}", response_model=OrganizationOut)
@require_system_staff()
def get_client_organization(
    organization_id: int,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> Organization:
    return service.get_client_organization(db, identity, organization_id)


@router.get("/tickets", response_model=Page[TicketOut])
@require_system_staff()
def list_client_tickets(
    status_: TicketStatus | None = Query(default=None, alias="status"),
    priority: TicketPriority | None = Query(default=None),
    organization_id: int | None = Query(default=None),
    assignee_id: int | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> Page:
    filters = TicketFilters(status=status_, priority=priority, organization_id=organization_id, assignee_id=assignee_id)
    return service.list_client_tickets(db, identity, filters, page=page, limit=limit).as_schema(TicketOut)


@router.put("/tickets/{ticket_id}/assign", response_model=TicketOut)
@require_system_staff()
def assign_ticket_to_technician(
    ticket_id: int,
    payload: TicketAssign,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> Ticket:
    return service.assign_system_technician(db, identity, ticket_id, payload.assignee_id)


# Not staff-only: client organizations may read their own banks.
@router.get("/organizations/{organization_id}/hour-banks", response_model=list[HourBankOut])
def list_client_hour_banks(
    organization_id: int,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> list[HourBank]:
    return hour_banks.list_hour_banks(db, identity, organization_id)


@router.put("/hour-bank-requests/{request_id}/process", response_model=HourBankRequestOut)
@require_system_staff()
def process_hour_bank_request(
    request_id: int,
    payload: ProcessHourBankRequest,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> HourBankRequest:
    return hour_banks.process_hour_bank_request(db, identity, request_id, payload.action, payload.notes)
