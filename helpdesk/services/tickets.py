"""
Ticket operations.

Every function takes the acting `IdentityContext` explicitly. Reads go through
the scoped query path; mutations load their target unscoped and then run the
membership checks from `helpdesk.security.scope`, so both paths agree.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from helpdesk.errors import (
    AlternateGrantDenied,
    InvalidCrossTenantOperation,
    InvalidRequest,
    NotFound,
    ScopeDenied,
)
from helpdesk.models.security import User
from helpdesk.models.tenancy import Company, Department, Organization
from helpdesk.models.tickets import Ticket, TicketStatus
from helpdesk.schemas.common import Page
from helpdesk.schemas.tickets import TicketCreate, TicketFilters, TicketUpdate
from helpdesk.security.context import IdentityContext
from helpdesk.security.guards import require_identity
from helpdesk.security.scope import ticket_visible
from helpdesk.services.pagination import paginate

logger = logging.getLogger(__name__)

# Never written through a generic update payload.
IMMUTABLE_TICKET_FIELDS = frozenset({"id", "organization_id", "created_by_id", "created_at"})


def create_ticket(db: Session, identity: IdentityContext | None, data: TicketCreate) -> Ticket:
    actor = require_identity(identity)
    scope = actor.scope

    company: Company | None = None
    if data.company_id is not None:
        company = db.get(Company, data.company_id)
        if company is None:
            raise InvalidRequest("Company not found")

    # Explicit organization, then the company's, then the actor's own.
    if data.organization_id is not None:
        organization_id = data.organization_id
    elif company is not None:
        organization_id = company.organization_id
    else:
        organization_id = actor.organization_id

    if organization_id is None:
        raise InvalidRequest("Organization is required to create a ticket")

    if not scope.is_global and organization_id != actor.organization_id:
        logger.info(
            "Ticket create denied (organization) user_id=%s organization_id=%s target=%s",
            actor.id,
            actor.organization_id,
            organization_id,
        )
        raise ScopeDenied("Cannot create ticket for different organization")

    department_id = data.department_id
    if department_id is not None and not scope.covers_all_departments_of_organization:
        if department_id != actor.department_id:
            logger.info(
                "Ticket create denied (department) user_id=%s department_id=%s target=%s",
                actor.id,
                actor.department_id,
                department_id,
            )
            raise ScopeDenied("Cannot create ticket for different department")

    organization = db.get(Organization, organization_id)
    if organization is None or not organization.is_active:
        raise InvalidRequest("Organization not found or inactive")

    if company is not None and company.organization_id != organization_id:
        raise InvalidRequest("Company does not belong to the ticket organization")

    if department_id is None and organization_id == actor.organization_id:
        department_id = actor.department_id

    if department_id is not None:
        _require_department_of(db, department_id, organization_id)

    if data.client_responsible_id is not None:
        _require_client_responsible(db, actor, data.client_responsible_id, organization_id)

    ticket = Ticket(
        title=data.title,
        description=data.description,
        priority=data.priority,
        type=data.type,
        organization_id=organization_id,
        department_id=department_id,
        company_id=data.company_id,
        client_responsible_id=data.client_responsible_id,
        due_date=data.due_date,
        created_by_id=actor.id,
    )
    db.add(ticket)
    db.commit()
    db.refresh(ticket)

    logger.info(
        "Ticket created ticket_id=%s user_id=%s organization_id=%s department_id=%s",
        ticket.id,
        actor.id,
        ticket.organization_id,
        ticket.department_id,
    )
    return ticket


def get_ticket(db: Session, identity: IdentityContext | None, ticket_id: int) -> Ticket:
    actor = require_identity(identity)
    ticket = db.scalars(
        select(Ticket).where(Ticket.id == ticket_id).execution_options(tenant_scope=actor)
    ).first()
    if ticket is None:
        # Out-of-scope tickets are indistinguishable from missing ones.
        raise NotFound("Ticket not found")
    return ticket


def list_tickets(
    db: Session,
    identity: IdentityContext | None,
    filters: TicketFilters | None = None,
    *,
    page: int | None = None,
    limit: int | None = None,
) -> Page:
    actor = require_identity(identity)
    stmt = select(Ticket).execution_options(tenant_scope=actor)
    stmt = apply_ticket_filters(stmt, filters)
    return paginate(db, stmt.order_by(Ticket.created_at.desc(), Ticket.id.desc()), page=page, limit=limit)


def apply_ticket_filters(stmt, filters: TicketFilters | None):
    if filters is None:
        return stmt
    if filters.status is not None:
        stmt = stmt.where(Ticket.status == filters.status)
    if filters.priority is not None:
        stmt = stmt.where(Ticket.priority == filters.priority)
    if filters.organization_id is not None:
        stmt = stmt.where(Ticket.organization_id == filters.organization_id)
    if filters.assignee_id is not None:
        stmt = stmt.where(Ticket.assignee_id == filters.assignee_id)
    return stmt


def update_ticket(db: Session, identity: IdentityContext | None, ticket_id: int, data: TicketUpdate) -> Ticket:
    actor = require_identity(identity)
    ticket = load_ticket_for_mutation(db, actor, ticket_id)

    changes = data.model_dump(exclude_unset=True)
    dropped = sorted(k for k in changes if k in IMMUTABLE_TICKET_FIELDS or k not in TicketUpdate.model_fields)
    for key in dropped:
        changes.pop(key)
    if dropped:
        logger.info("Ignoring fields on ticket update ticket_id=%s fields=%s", ticket.id, dropped)

    if "title" in changes and changes["title"] is None:
        changes.pop("title")

    if "department_id" in changes and changes["department_id"] != ticket.department_id:
        new_department_id = changes["department_id"]
        if not actor.scope.covers_all_departments_of_organization and new_department_id != actor.department_id:
            logger.info(
                "Ticket move denied user_id=%s ticket_id=%s target_department_id=%s",
                actor.id,
                ticket.id,
                new_department_id,
            )
            raise ScopeDenied("Cannot move ticket to different department")
        if new_department_id is not None:
            _require_department_of(db, new_department_id, ticket.organization_id)

    if changes.get("client_responsible_id") is not None:
        _require_client_responsible(db, actor, changes["client_responsible_id"], ticket.organization_id)

    for key in ("priority", "status", "type"):
        if key in changes and changes[key] is None:
            changes.pop(key)

    new_status = changes.get("status")
    if new_status == TicketStatus.RESOLVED and ticket.status != TicketStatus.RESOLVED:
        ticket.resolved_at = datetime.utcnow()

    for key, value in changes.items():
        setattr(ticket, key, value)

    db.commit()
    db.refresh(ticket)
    logger.info("Ticket updated ticket_id=%s user_id=%s fields=%s", ticket.id, actor.id, sorted(changes))
    return ticket


def assign_ticket(db: Session, identity: IdentityContext | None, ticket_id: int, assignee_id: int) -> Ticket:
    """Assign within the ticket's own organization."""

    actor = require_identity(identity)
    ticket = load_ticket_for_mutation(db, actor, ticket_id)

    assignee = db.get(User, assignee_id)
    if assignee is None or not assignee.is_active:
        raise InvalidRequest("Assignee not found or inactive")
    if assignee.organization_id != ticket.organization_id:
        logger.info(
            "Ticket assign denied (assignee tenant) user_id=%s ticket_id=%s assignee_id=%s",
            actor.id,
            ticket.id,
            assignee.id,
        )
        raise InvalidCrossTenantOperation("Assignee must belong to the ticket organization")

    ticket.assignee_id = assignee.id
    db.commit()
    db.refresh(ticket)
    logger.info("Ticket assigned ticket_id=%s user_id=%s assignee_id=%s", ticket.id, actor.id, assignee.id)
    return ticket


def load_ticket_for_mutation(db: Session, actor: IdentityContext, ticket_id: int) -> Ticket:
    ticket = db.get(Ticket, ticket_id)
    if ticket is None:
        raise NotFound("Ticket not found")
    if not ticket_visible(actor, ticket):
        logger.info("Ticket access denied user_id=%s ticket_id=%s", actor.id, ticket_id)
        raise AlternateGrantDenied("Ticket not found")
    return ticket


def _require_department_of(db: Session, department_id: int, organization_id: int) -> Department:
    department = db.get(Department, department_id)
    if department is None or department.organization_id != organization_id:
        raise InvalidRequest("Department does not belong to the ticket organization")
    return department


def _require_active_user(db: Session, user_id: int, reason: str) -> User:
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise InvalidRequest(reason)
    return user


def _require_client_responsible(db: Session, actor: IdentityContext, user_id: int, organization_id: int) -> User:
    # The client responsible user gains read/update access to the ticket.
    user = _require_active_user(db, user_id, "Client responsible user not found")
    if user.organization_id != organization_id:
        logger.info(
            "Client responsible denied (tenant) user_id=%s organization_id=%s client_responsible_id=%s",
            actor.id,
            organization_id,
            user.id,
        )
        raise InvalidCrossTenantOperation("Client responsible must belong to the ticket organization")
    return user
