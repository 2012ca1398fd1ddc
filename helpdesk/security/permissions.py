"""
Permission resolver.

Grants are typed `(Resource, Action)` pairs. The store keeps them as two
strings per `permissions` row; the identity loader flattens every active
role of a user into a frozenset of `PermissionGrant`.

The resolver is pure: it only reads the already-loaded `IdentityContext`.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from helpdesk.security.context import IdentityContext


class Resource(str, enum.Enum):
    USERS = "users"
    ROLES = "roles"
    PERMISSIONS = "permissions"
    ROLE_PERMISSIONS = "role_permissions"
    USER_ROLES = "user_roles"
    ORGANIZATIONS = "organizations"
    DEPARTMENTS = "departments"
    COMPANIES = "companies"
    CUSTOMERS = "customers"
    TICKETS = "tickets"
    TIME_ENTRIES = "time_entries"
    KNOWLEDGE_ARTICLES = "knowledge_articles"
    DASHBOARD = "dashboard"
    REPORTS = "reports"
    ANALYTICS = "analytics"
    HOUR_BANKS = "hour_banks"
    HOUR_BANK_REQUESTS = "hour_bank_requests"
    CLIENT_MANAGEMENT = "client_management"
    SETTINGS = "settings"
    SLA = "sla"
    WEBHOOKS = "webhooks"


class Action(str, enum.Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ASSIGN = "assign"
    RESOLVE = "resolve"
    MANAGE = "manage"
    PUBLISH = "publish"
    APPROVE = "approve"


class PermissionGrant(NamedTuple):
    resource: Resource
    action: Action

    def __str__(self) -> str:
        return f"{self.resource.value}:{self.action.value}"

    @classmethod
    def of(cls, resource: Resource | str, action: Action | str) -> PermissionGrant:
        """Build a grant from enum members or their string values (ValueError if unknown)."""
        return cls(Resource(resource), Action(action))

    @classmethod
    def parse(cls, raw: str) -> PermissionGrant:
        """Parse the `resource:action` notation used in config files."""
        resource, sep, action = raw.strip().partition(":")
        if not sep or not resource or not action:
            raise ValueError(f"Invalid permission {raw!r}. Expected 'resource:action'.")
        return cls.of(resource, action)


SUPER_ADMIN_ROLE = "super_admin"


def has_permission(actor: IdentityContext | None, resource: Resource | str, action: Action | str) -> bool:
    """
    True if the actor may perform `action` on `resource`.

    Super users and the `super_admin` role bypass the permission set.
    Unknown resource/action names never match.
    """

    if actor is None:
        return False
    if actor.is_super_user or actor.role == SUPER_ADMIN_ROLE:
        return True

    try:
        grant = PermissionGrant.of(resource, action)
    except ValueError:
        return False
    return grant in actor.permissions


def has_any_permission(
    actor: IdentityContext | None,
    required: Iterable[PermissionGrant | tuple[Resource | str, Action | str]],
) -> bool:
    """Short-circuiting OR over `has_permission`. An empty requirement list is False."""
    return any(has_permission(actor, resource, action) for resource, action in required)
