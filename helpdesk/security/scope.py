"""
Scope resolver.

Every question has two forms that must agree:

- a SQL predicate (`*_criteria`) applied to enumeration queries through the
  `tenant_scope` execution option (see `helpdesk.db.filters`);
- a pure membership test (`*_in_scope` / `ticket_visible`) used on rows that
  were loaded without scoping, typically inside mutations.

Both are written against the same `EffectiveScope` variant, never against raw flags.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import ColumnElement, and_, or_, select
from sqlalchemy.orm import Session

from helpdesk.models.hour_banks import HourBank, HourBankRequest
from helpdesk.models.tenancy import Company, Department, Organization
from helpdesk.models.tickets import Ticket
from helpdesk.security.context import IdentityContext, ScopeKind


# ---- SQL predicates -------------------------------------------------------------------
# None means "unrestricted".


def organization_criteria(identity: IdentityContext) -> ColumnElement[bool] | None:
    return _organization_column_criteria(identity, Organization.id)


def department_criteria(identity: IdentityContext) -> ColumnElement[bool] | None:
    scope = identity.scope
    if scope.kind is ScopeKind.GLOBAL:
        return None
    if scope.kind is ScopeKind.ORGANIZATION_DEPARTMENTS:
        return Department.organization_id == scope.organization_id
    if scope.kind is ScopeKind.DEPARTMENT:
        return Department.id == scope.department_id
    return Department.id.in_([])


def ticket_criteria(identity: IdentityContext) -> ColumnElement[bool] | None:
    scope = identity.scope
    if scope.kind is ScopeKind.GLOBAL:
        return None

    grants = or_(
        Ticket.created_by_id == identity.id,
        Ticket.assignee_id == identity.id,
        Ticket.client_responsible_id == identity.id,
    )
    if scope.kind is ScopeKind.ORGANIZATION_DEPARTMENTS:
        return or_(Ticket.organization_id == scope.organization_id, grants)
    if scope.kind is ScopeKind.DEPARTMENT:
        return or_(Ticket.department_id == scope.department_id, grants)
    if scope.kind is ScopeKind.ORGANIZATION:
        return or_(and_(Ticket.organization_id == scope.organization_id, Ticket.department_id.is_(None)), grants)
    return grants


def _organization_column_criteria(identity: IdentityContext, column: Any) -> ColumnElement[bool] | None:
    scope = identity.scope
    if scope.kind is ScopeKind.GLOBAL:
        return None
    if scope.organization_id is None:
        return column.in_([])
    return column == scope.organization_id


def criteria_for(model: type, identity: IdentityContext) -> ColumnElement[bool] | None:
    """Visibility predicate for any tenant-owned model."""

    if model is Organization:
        return organization_criteria(identity)
    if model is Department:
        return department_criteria(identity)
    if model is Ticket:
        return ticket_criteria(identity)
    if model in (Company, HourBank, HourBankRequest):
        return _organization_column_criteria(identity, model.organization_id)
    raise TypeError(f"{model.__name__} is not tenant-scoped")


TENANT_SCOPED_MODELS: tuple[type, ...] = (Organization, Department, Ticket, Company, HourBank, HourBankRequest)


# ---- Membership tests -----------------------------------------------------------------


def organization_in_scope(identity: IdentityContext, organization_id: int | None) -> bool:
    if organization_id is None:
        return False
    scope = identity.scope
    if scope.kind is ScopeKind.GLOBAL:
        return True
    return scope.organization_id is not None and organization_id == scope.organization_id


def department_in_scope(
    identity: IdentityContext,
    department_id: int,
    department_organization_id: int,
    *,
    organization_id: int | None = None,
) -> bool:
    """
    Membership form of `accessible_department_ids`.

    `organization_id` restricts the answer to one organization, like the
    optional filter of the enumeration form.
    """

    if organization_id is not None and department_organization_id != organization_id:
        return False

    scope = identity.scope
    if scope.kind is ScopeKind.GLOBAL:
        return True
    if scope.kind is ScopeKind.ORGANIZATION_DEPARTMENTS:
        return department_organization_id == scope.organization_id
    if scope.kind is ScopeKind.DEPARTMENT:
        return department_id == scope.department_id
    return False


def holds_alternate_grant(identity: IdentityContext, ticket: Ticket) -> bool:
    """Creator, assignee or client-responsible party of the ticket."""
    return identity.id in (ticket.created_by_id, ticket.assignee_id, ticket.client_responsible_id)


def ticket_in_scope(identity: IdentityContext, organization_id: int, department_id: int | None) -> bool:
    """Tenant placement check alone, without alternate grants."""

    scope = identity.scope
    if scope.kind is ScopeKind.GLOBAL:
        return True
    if scope.kind is ScopeKind.ORGANIZATION_DEPARTMENTS:
        return organization_id == scope.organization_id
    if scope.kind is ScopeKind.DEPARTMENT:
        return department_id is not None and department_id == scope.department_id
    if scope.kind is ScopeKind.ORGANIZATION:
        return organization_id == scope.organization_id and department_id is None
    return False


def ticket_visible(identity: IdentityContext, ticket: Ticket) -> bool:
    """Membership form of `ticket_criteria`."""
    return ticket_in_scope(identity, ticket.organization_id, ticket.department_id) or holds_alternate_grant(
        identity, ticket
    )


# ---- Enumeration ----------------------------------------------------------------------


def accessible_organization_ids(db: Session, identity: IdentityContext) -> set[int]:
    stmt = select(Organization).execution_options(tenant_scope=identity)
    return {org.id for org in db.scalars(stmt)}


def accessible_department_ids(
    db: Session,
    identity: IdentityContext,
    organization_id: int | None = None,
) -> set[int]:
    stmt = select(Department).execution_options(tenant_scope=identity)
    if organization_id is not None:
        stmt = stmt.where(Department.organization_id == organization_id)
    return {dept.id for dept in db.scalars(stmt)}
