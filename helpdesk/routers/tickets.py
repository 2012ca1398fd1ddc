from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from helpdesk.db.session import get_db
from helpdesk.models.tickets import Ticket, TicketPriority, TicketStatus
from helpdesk.schemas.common import Page
from helpdesk.schemas.tickets import TicketAssign, TicketCreate, TicketFilters, TicketOut, TicketUpdate
from helpdesk.security.context import IdentityContext
from helpdesk.security.dependencies import get_identity
from helpdesk.services import client_management
from helpdesk.services import tickets as service

router = APIRouter(prefix="/tickets", tags=["tickets"])


@router.get("", response_model=Page[TicketOut])
def list_tickets(
    status_: TicketStatus | None = Query(default=None, alias="status"),
    priority: TicketPriority | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> Page:
    filters = TicketFilters(status=status_, priority=priority)
    return service.list_tickets(db, identity, filters, page=page, limit=limit).as_schema(TicketOut)


@router.get("/{ticket_id}", response_model=TicketOut)
def get_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> Ticket:
    return service.get_ticket(db, identity, ticket_id)


@router.post("", response_model=TicketOut, status_code=status.HTTP_201_CREATED)
def create_ticket(
    payload: TicketCreate,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> Ticket:
    return service.create_ticket(db, identity, payload)


@router.put("/{ticket_id}", response_model=TicketOut)
def update_ticket(
    ticket_id: int,
    payload: TicketUpdate,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> Ticket:
    return service.update_ticket(db, identity, ticket_id, payload)


@router.put("/{ticket_id}/assign", response_model=TicketOut)
def assign_ticket(
    ticket_id: int,
    payload: TicketAssign,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> Ticket:
    return service.assign_ticket(db, identity, ticket_id, payload.assignee_id)


@router.put("/{ticket_id}/assign-system-tech", response_model=TicketOut)
def assign_system_technician(
    ticket_id: int,
    payload: TicketAssign,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> Ticket:
    return client_management.assign_system_technician(db, identity, ticket_id, payload.assignee_id)
