from __future__ import annotations

import enum
from dataclasses import dataclass, field

from helpdesk.models.tenancy import OrganizationType
from helpdesk.security.permissions import PermissionGrant


class ScopeKind(str, enum.Enum):
    GLOBAL = "global"
    ORGANIZATION = "organization"
    ORGANIZATION_DEPARTMENTS = "organization_departments"
    DEPARTMENT = "department"
    NONE = "none"


@dataclass(frozen=True)
class EffectiveScope:
    """
    What an actor may enumerate, derived once from the capability flags.

    - GLOBAL: every organization and department.
    - ORGANIZATION_DEPARTMENTS(org): the organization and all of its departments.
    - DEPARTMENT(dept, org?): the organization (if any) and that one department.
    - ORGANIZATION(org): the organization, no department.
    - NONE: nothing.
    """

    kind: ScopeKind
    organization_id: int | None = None
    department_id: int | None = None

    @classmethod
    def resolve(
        cls,
        *,
        organization_id: int | None,
        department_id: int | None,
        is_super_user: bool,
        can_cross_organizations: bool,
        can_cross_departments: bool,
    ) -> EffectiveScope:
        if is_super_user or can_cross_organizations:
            return cls(ScopeKind.GLOBAL)
        if can_cross_departments and organization_id is not None:
            return cls(ScopeKind.ORGANIZATION_DEPARTMENTS, organization_id=organization_id)
        if department_id is not None:
            return cls(ScopeKind.DEPARTMENT, organization_id=organization_id, department_id=department_id)
        if organization_id is not None:
            return cls(ScopeKind.ORGANIZATION, organization_id=organization_id)
        return cls(ScopeKind.NONE)

    @property
    def is_global(self) -> bool:
        return self.kind is ScopeKind.GLOBAL

    @property
    def covers_all_departments_of_organization(self) -> bool:
        return self.kind in (ScopeKind.GLOBAL, ScopeKind.ORGANIZATION_DEPARTMENTS)


@dataclass(frozen=True)
class IdentityContext:
    """
    Per-request snapshot of the acting user.

    Built once by `helpdesk.security.auth.load_identity` and passed explicitly to
    every guard, resolver and domain operation. Never mutated.
    """

    id: int
    role: str
    organization_id: int | None
    department_id: int | None
    is_super_user: bool = False
    can_cross_organizations: bool = False
    can_cross_departments: bool = False
    permissions: frozenset[PermissionGrant] = frozenset()
    organization_type: OrganizationType | None = None

    scope: EffectiveScope = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "scope",
            EffectiveScope.resolve(
                organization_id=self.organization_id,
                department_id=self.department_id,
                is_super_user=self.is_super_user,
                can_cross_organizations=self.can_cross_organizations,
                can_cross_departments=self.can_cross_departments,
            ),
        )

    @property
    def is_system_staff(self) -> bool:
        """Super user, or member of the system-owner organization."""
        return self.is_super_user or self.organization_type == OrganizationType.SYSTEM_OWNER

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "role": self.role,
            "organization_id": self.organization_id,
            "organization_type": self.organization_type.value if self.organization_type else None,
            "department_id": self.department_id,
            "is_super_user": self.is_super_user,
            "can_cross_organizations": self.can_cross_organizations,
            "can_cross_departments": self.can_cross_departments,
            "permissions": sorted(str(p) for p in self.permissions),
            "scope": self.scope.kind.value,
        }
