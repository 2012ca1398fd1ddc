from __future__ import annotations

import logging

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from helpdesk.db.session import get_db
from helpdesk.errors import PermissionDenied, Unauthenticated
from helpdesk.security.auth import extract_user_id, load_identity
from helpdesk.security.config import SecurityConfig
from helpdesk.security.context import IdentityContext
from helpdesk.security.guards import require_system_staff
from helpdesk.security.permissions import has_any_permission

logger = logging.getLogger(__name__)


def get_security_config(request: Request) -> SecurityConfig:
    config = getattr(request.app.state, "security_config", None)
    if config is None:
        raise RuntimeError("Security config not loaded. Did app startup run?")
    return config


def get_identity(request: Request) -> IdentityContext:
    """The IdentityContext loaded by `enforce_security` for this request."""

    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise Unauthenticated("Authentication required")
    return identity


def enforce_security(
    request: Request,
    config: SecurityConfig = Depends(get_security_config),
    db: Session = Depends(get_db, use_cache=False),
) -> None:
    """
    Global security dependency (configuration-driven).

    Loads the IdentityContext once per request, then applies the coarse route
    gate: required permissions (any-of) and the system-staff restriction.
    Tenant scope and ownership are decided later, by the domain operation.
    """

    path = request.url.path
    method = request.method.upper()

    rule = config.match(path, method)

    # Optional decorator metadata.
    endpoint = request.scope.get("endpoint")
    decorator_permissions = set(getattr(endpoint, "__security_required_permissions__", set())) if endpoint else set()
    decorator_staff = bool(getattr(endpoint, "__security_require_system_staff__", False)) if endpoint else False

    auth_required = rule.auth_required or bool(decorator_permissions) or decorator_staff
    if not auth_required:
        return

    user_id = extract_user_id(request, config)
    if user_id is None:
        raise Unauthenticated("Missing user id")

    identity = load_identity(db, user_id)
    if identity is None:
        raise Unauthenticated("Invalid or inactive user")

    required = set(rule.required_permissions) | decorator_permissions
    if required and not has_any_permission(identity, required):
        logger.info(
            "Route permission denied user_id=%s path=%s method=%s required=%s",
            identity.id,
            path,
            method,
            sorted(str(p) for p in required),
        )
        raise PermissionDenied(f"Insufficient permissions. Required one of: {sorted(str(p) for p in required)}")

    if rule.require_system_staff or decorator_staff:
        require_system_staff(identity)

    request.state.identity = identity
