"""
Tenant guards.

Coarse, whole-organization / whole-department gates. They are always combined
with per-resource checks inside the domain operations: passing a guard does
not, by itself, grant access to a particular ticket or department.
"""

from __future__ import annotations

import logging

from helpdesk.errors import ScopeDenied, Unauthenticated
from helpdesk.security.context import IdentityContext, ScopeKind

logger = logging.getLogger(__name__)


def require_identity(identity: IdentityContext | None) -> IdentityContext:
    if identity is None:
        raise Unauthenticated("Unauthorized")
    return identity


def require_organization_access(identity: IdentityContext | None, organization_id: int | None = None) -> IdentityContext:
    """
    401 without an actor; pass for global scope; otherwise the actor must have an
    organization and, when a target is given, it must be the actor's own.
    """

    actor = require_identity(identity)
    scope = actor.scope

    if scope.kind is ScopeKind.GLOBAL:
        return actor

    if organization_id is None:
        if scope.organization_id is None:
            logger.info("Organization guard denied (no organization) user_id=%s", actor.id)
            raise ScopeDenied("No organization access")
        return actor

    if scope.organization_id != organization_id:
        logger.info(
            "Organization guard denied user_id=%s organization_id=%s target=%s",
            actor.id,
            scope.organization_id,
            organization_id,
        )
        raise ScopeDenied("Organization access denied")
    return actor


def require_department_access(identity: IdentityContext | None, department_id: int | None = None) -> IdentityContext:
    """
    401 without an actor; pass when any cross-scope flag is set; otherwise the
    actor must have a department and, when a target is given, it must be the actor's own.

    The gate reads the raw flags. Enumeration goes through `EffectiveScope`, so a
    cross-department actor without an organization still lists nothing.
    """

    actor = require_identity(identity)
    scope = actor.scope

    if actor.is_super_user or actor.can_cross_organizations or actor.can_cross_departments:
        return actor

    if department_id is None:
        if scope.department_id is None:
            logger.info("Department guard denied (no department) user_id=%s", actor.id)
            raise ScopeDenied("No department access")
        return actor

    if scope.department_id != department_id:
        logger.info(
            "Department guard denied user_id=%s department_id=%s target=%s",
            actor.id,
            scope.department_id,
            department_id,
        )
        raise ScopeDenied("Department access denied")
    return actor


def require_system_staff(identity: IdentityContext | None, reason: str = "Only system users can perform this action") -> IdentityContext:
    """Super user or member of the system-owner organization."""

    actor = require_identity(identity)
    if not actor.is_system_staff:
        logger.info("System staff guard denied user_id=%s organization_id=%s", actor.id, actor.organization_id)
        raise ScopeDenied(reason)
    return actor

