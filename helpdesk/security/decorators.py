from __future__ import annotations

from collections.abc import Callable

from helpdesk.security.permissions import PermissionGrant


def require_permissions(*permissions: str) -> Callable:
    """
    Attach required `resource:action` grants (any-of) to an endpoint.

    Implementation detail:
    - This decorator does NOT perform the check itself.
    - It attaches metadata that the global security dependency reads
      *after* routing and merges with the YAML route rule.
    """

    grants = {PermissionGrant.parse(p) for p in permissions}

    def decorator(fn: Callable) -> Callable:
        existing = set(getattr(fn, "__security_required_permissions__", set()))
        setattr(fn, "__security_required_permissions__", existing | grants)
        return fn

    return decorator


def require_system_staff() -> Callable:
    """
    Attach metadata restricting an endpoint to super users and members of the
    system-owner organization.
    """

    def decorator(fn: Callable) -> Callable:
        setattr(fn, "__security_require_system_staff__", True)
        return fn

    return decorator
