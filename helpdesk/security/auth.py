from __future__ import annotations

import logging
from datetime import datetime

from fastapi import HTTPException, Request, status
from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from helpdesk.errors import Unauthenticated
from helpdesk.models.security import Permission, Role, User, role_permissions, user_roles
from helpdesk.security.config import SecurityConfig
from helpdesk.security.context import IdentityContext
from helpdesk.security.permissions import PermissionGrant

logger = logging.getLogger(__name__)


def extract_user_id(request: Request, config: SecurityConfig) -> int | None:
    """
    Demo auth: extract bearer token and treat it as a user_id.

    - Input: `Authorization: Bearer <token>`
    - Demo behavior: `<token>` must be an integer user id
    - How the identity is established is out of scope here; only the id is consumed.
    """

    header_name = config.auth.authorization_header
    bearer_prefix = config.auth.bearer_prefix

    raw = request.headers.get(header_name)
    if not raw:
        logger.info("Missing Authorization header (auth required) path=%s method=%s", request.url.path, request.method)
        return None

    prefix = f"{bearer_prefix} "
    if not raw.startswith(prefix):
        logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Expected '{bearer_prefix} <token>'.",
        )

    token = raw[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header_name}. Missing token after '{bearer_prefix}'.",
        )

    try:
        return int(token)
    except ValueError as exc:
        logger.warning("Bearer token not an int (demo expects user_id) path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid bearer token for demo (expected integer user id).",
        ) from exc


def load_user(db: Session, user_id: int) -> User | None:
    """Active user with organization and department loaded, or None."""

    user = db.execute(
        select(User)
        .where(User.id == user_id)
        .options(
            selectinload(User.organization),
            selectinload(User.department),
        )
    ).scalar_one_or_none()

    if user is None or not user.is_active:
        return None
    return user


def load_permission_grants(db: Session, user_id: int, *, now: datetime | None = None) -> frozenset[PermissionGrant]:
    """
    Flatten user -> user_roles -> roles -> role_permissions -> permissions.

    Inactive roles, inactive assignments and expired assignments grant nothing.
    Rows whose resource/action is unknown are skipped.
    """

    now = now or datetime.utcnow()
    rows = db.execute(
        select(Permission.resource, Permission.action)
        .join(role_permissions, role_permissions.c.permission_id == Permission.id)
        .join(Role, Role.id == role_permissions.c.role_id)
        .join(user_roles, user_roles.c.role_id == Role.id)
        .where(
            user_roles.c.user_id == user_id,
            user_roles.c.is_active.is_(True),
            Role.is_active.is_(True),
            or_(user_roles.c.expires_at.is_(None), user_roles.c.expires_at > now),
        )
        .distinct()
    ).all()

    grants: set[PermissionGrant] = set()
    for resource, action in rows:
        try:
            grants.add(PermissionGrant.of(resource, action))
        except ValueError:
            logger.warning("Skipping unknown permission %s:%s for user_id=%s", resource, action, user_id)
    return frozenset(grants)


def build_identity(user: User, grants: frozenset[PermissionGrant]) -> IdentityContext:
    department_id = user.department_id
    if user.department is not None and user.department.organization_id != user.organization_id:
        # Inconsistent placement narrows scope rather than widening it.
        logger.warning(
            "User department belongs to another organization; ignoring department user_id=%s department_id=%s",
            user.id,
            department_id,
        )
        department_id = None

    return IdentityContext(
        id=user.id,
        role=user.role,
        organization_id=user.organization_id,
        department_id=department_id,
        is_super_user=user.is_super_user,
        can_cross_organizations=user.can_cross_organizations,
        can_cross_departments=user.can_cross_departments,
        permissions=grants,
        organization_type=user.organization.type if user.organization is not None else None,
    )


def load_identity(db: Session, user_id: int) -> IdentityContext | None:
    """
    Resolve a base identity (user id) to a fully loaded IdentityContext.

    Returns None when the id does not resolve to an active user. A failure while
    loading never yields a partial context: it raises `Unauthenticated`.
    """

    try:
        user = load_user(db, user_id)
        if user is None:
            logger.info("Identity not resolved user_id=%s", user_id)
            return None
        grants = load_permission_grants(db, user.id)
    except SQLAlchemyError as exc:
        logger.exception("Failed to load identity user_id=%s", user_id)
        raise Unauthenticated("Identity could not be loaded") from exc

    identity = build_identity(user, grants)
    logger.debug(
        "Identity loaded user_id=%s role=%s scope=%s permissions=%d",
        identity.id,
        identity.role,
        identity.scope.kind.value,
        len(identity.permissions),
    )
    return identity
