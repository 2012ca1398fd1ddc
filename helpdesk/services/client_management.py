"""
System-staff views over client organizations.

These operations cross tenant boundaries on purpose, so they never use the
actor's own scope: the system-staff gate runs first and the client-type
preconditions are checked explicitly on every target.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from helpdesk.errors import InvalidCrossTenantOperation, NotFound
from helpdesk.models.security import User
from helpdesk.models.tenancy import Organization, OrganizationType
from helpdesk.models.tickets import Ticket
from helpdesk.schemas.common import Page
from helpdesk.schemas.tickets import TicketFilters
from helpdesk.security.context import IdentityContext
from helpdesk.security.guards import require_system_staff
from helpdesk.services.pagination import paginate
from helpdesk.services.tickets import apply_ticket_filters

logger = logging.getLogger(__name__)

STAFF_ONLY = "Only system users can access client management"


def list_client_organizations(db: Session, identity: IdentityContext | None) -> list[Organization]:
    require_system_staff(identity, STAFF_ONLY)
    stmt = (
        select(Organization)
        .where(Organization.type == OrganizationType.CLIENT_COMPANY)
        .order_by(Organization.name)
    )
    return list(db.scalars(stmt).all())


def get_client_organization(db: Session, identity: IdentityContext | None, organization_id: int) -> Organization:
    require_system_staff(identity, STAFF_ONLY)
    organization = db.scalars(
        select(Organization)
        .where(Organization.id == organization_id, Organization.type == OrganizationType.CLIENT_COMPANY)
        .options(selectinload(Organization.companies), selectinload(Organization.departments))
    ).first()
    if organization is None:
        raise NotFound("Client organization not found")
    return organization


def list_client_tickets(
    db: Session,
    identity: IdentityContext | None,
    filters: TicketFilters | None = None,
    *,
    page: int | None = None,
    limit: int | None = None,
) -> Page:
    require_system_staff(identity, STAFF_ONLY)
    stmt = (
        select(Ticket)
        .join(Organization, Organization.id == Ticket.organization_id)
        .where(Organization.type == OrganizationType.CLIENT_COMPANY)
    )
    stmt = apply_ticket_filters(stmt, filters)
    return paginate(db, stmt.order_by(Ticket.created_at.desc(), Ticket.id.desc()), page=page, limit=limit)


def assign_system_technician(
    db: Session,
    identity: IdentityContext | None,
    ticket_id: int,
    assignee_id: int,
) -> Ticket:
    """
    Assign a system-owner technician to a client-organization ticket.

    Each precondition fails with its own reason: actor not system staff,
    ticket missing, ticket not in a client organization, assignee not a
    system-owner user.
    """

    actor = require_system_staff(identity, "Only system users can assign technicians")

    ticket = db.scalars(
        select(Ticket).where(Ticket.id == ticket_id).options(selectinload(Ticket.organization))
    ).first()
    if ticket is None:
        raise NotFound("Ticket not found")

    if ticket.organization.type != OrganizationType.CLIENT_COMPANY:
        logger.info("Technician assign rejected (ticket tenant) user_id=%s ticket_id=%s", actor.id, ticket_id)
        raise InvalidCrossTenantOperation("Can only assign system technicians to client tickets")

    assignee = db.scalars(
        select(User).where(User.id == assignee_id).options(selectinload(User.organization))
    ).first()
    if (
        assignee is None
        or not assignee.is_active
        or assignee.organization is None
        or assignee.organization.type != OrganizationType.SYSTEM_OWNER
    ):
        logger.info(
            "Technician assign rejected (assignee tenant) user_id=%s ticket_id=%s assignee_id=%s",
            actor.id,
            ticket_id,
            assignee_id,
        )
        raise InvalidCrossTenantOperation("Assignee must be system user")

    ticket.assignee_id = assignee.id
    db.commit()
    db.refresh(ticket)
    logger.info("Technician assigned ticket_id=%s assignee_id=%s user_id=%s", ticket.id, assignee.id, actor.id)
    return ticket
