from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from helpdesk.errors import AlternateGrantDenied, Conflict, NotFound, PermissionDenied
from helpdesk.models.security import UserRole
from helpdesk.models.tenancy import Department, Organization, OrganizationType
from helpdesk.schemas.tenancy import OrganizationCreate, OrganizationUpdate
from helpdesk.security.context import IdentityContext
from helpdesk.security.guards import require_identity
from helpdesk.security.scope import organization_in_scope
from helpdesk.settings import get_settings

logger = logging.getLogger(__name__)


def list_organizations(db: Session, identity: IdentityContext | None) -> list[Organization]:
    actor = require_identity(identity)
    stmt = select(Organization).execution_options(tenant_scope=actor).order_by(Organization.name)
    return list(db.scalars(stmt).all())


def get_organization(db: Session, identity: IdentityContext | None, organization_id: int) -> Organization:
    actor = require_identity(identity)
    organization = db.scalars(
        select(Organization).where(Organization.id == organization_id).execution_options(tenant_scope=actor)
    ).first()
    if organization is None:
        raise NotFound("Organization not found")
    return organization


def create_organization(db: Session, identity: IdentityContext | None, data: OrganizationCreate) -> Organization:
    actor = require_identity(identity)
    if not (actor.is_super_user or actor.role == UserRole.SYSTEM_ADMIN.value):
        logger.info("Organization create denied user_id=%s role=%s", actor.id, actor.role)
        raise PermissionDenied("Only system administrators can create organizations")

    if data.type is OrganizationType.SYSTEM_OWNER:
        existing = db.scalar(select(Organization.id).where(Organization.type == OrganizationType.SYSTEM_OWNER))
        if existing is not None:
            raise Conflict("A system owner organization already exists")

    organization = Organization(name=data.name, type=data.type, email=data.email, tier=data.tier)
    db.add(organization)
    db.flush()

    if organization.type is OrganizationType.CLIENT_COMPANY:
        for name in get_settings().default_client_departments:
            db.add(Department(name=name, organization_id=organization.id))

    db.commit()
    db.refresh(organization)
    logger.info(
        "Organization created organization_id=%s type=%s user_id=%s",
        organization.id,
        organization.type.value,
        actor.id,
    )
    return organization


def update_organization(
    db: Session,
    identity: IdentityContext | None,
    organization_id: int,
    data: OrganizationUpdate,
) -> Organization:
    actor = require_identity(identity)

    organization = db.get(Organization, organization_id)
    if organization is None:
        raise NotFound("Organization not found")
    if not organization_in_scope(actor, organization.id) and actor.role != UserRole.SYSTEM_ADMIN.value:
        logger.info("Organization access denied user_id=%s organization_id=%s", actor.id, organization_id)
        raise AlternateGrantDenied("Organization not found")

    allowed = (
        actor.is_super_user
        or actor.role == UserRole.SYSTEM_ADMIN.value
        or (actor.role == UserRole.COMPANY_ADMIN.value and actor.organization_id == organization.id)
    )
    if not allowed:
        logger.info("Organization update denied user_id=%s role=%s organization_id=%s", actor.id, actor.role, organization_id)
        raise PermissionDenied("Insufficient role to update organization")

    changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None or k == "email"}
    for key, value in changes.items():
        setattr(organization, key, value)

    db.commit()
    db.refresh(organization)
    logger.info("Organization updated organization_id=%s user_id=%s fields=%s", organization.id, actor.id, sorted(changes))
    return organization
