"""
Authorization and domain error hierarchy.

Domain operations raise these; `helpdesk.main` maps them to HTTP responses
using `status_code` and passes `reason` through unchanged.
"""

from __future__ import annotations


class TenantAccessError(Exception):
    """Base error for every structured rejection raised by a domain operation."""

    status_code: int = 500

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    def to_dict(self) -> dict[str, str]:
        return {"detail": self.reason, "error": type(self).__name__}


class Unauthenticated(TenantAccessError):
    """No actor could be resolved for the request."""

    status_code = 401


class ScopeDenied(TenantAccessError):
    """The actor's organization/department scope does not cover the target."""

    status_code = 403


class PermissionDenied(TenantAccessError):
    """The actor is in scope but lacks the role or permission for the action."""

    status_code = 403


class NotFound(TenantAccessError):
    """The target does not exist, or exists outside the actor's visibility."""

    status_code = 404


class AlternateGrantDenied(NotFound):
    """Scope failed and no creator/assignee/responsible grant applies either."""


class InvalidCrossTenantOperation(TenantAccessError):
    """A tenant-type or tenant-membership precondition of the operation is not met."""

    status_code = 400


class InvalidRequest(TenantAccessError):
    """The request is well-formed but cannot be applied (missing tenant, bad reference)."""

    status_code = 400


class Conflict(TenantAccessError):
    status_code = 409


class ConflictingStateTransition(Conflict):
    """The entity already left the state the operation requires."""
