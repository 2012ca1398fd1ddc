from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session

from helpdesk import models  # noqa: F401  (register all tables)
from helpdesk.db.base import Base
from helpdesk.db.session import SessionLocal, engine
from helpdesk.models.security import Permission, Role, User, UserRole
from helpdesk.models.tenancy import Company, Department, Organization, OrganizationType
from helpdesk.security.permissions import PermissionGrant
from helpdesk.settings import get_settings

logger = logging.getLogger(__name__)


class SeedOrganization(BaseModel):
    key: str
    name: str
    type: OrganizationType
    email: str | None = None
    tier: str = "basic"
    departments: list[str] = Field(default_factory=list)
    companies: list[str] = Field(default_factory=list)


class SeedRole(BaseModel):
    name: str
    description: str | None = None
    organization: str | None = None
    is_system_role: bool = False
    permissions: list[str] = Field(default_factory=list)

    @field_validator("permissions")
    @classmethod
    def check_permissions(cls, values: list[str]) -> list[str]:
        for raw in values:
            PermissionGrant.parse(raw)
        return values


class SeedUser(BaseModel):
    email: str
    first_name: str | None = None
    last_name: str | None = None
    role: UserRole = UserRole.COMPANY_USER
    organization: str | None = None
    department: str | None = None
    is_super_user: bool = False
    can_cross_organizations: bool = False
    can_cross_departments: bool = False
    roles: list[str] = Field(default_factory=list)


class SeedData(BaseModel):
    organizations: list[SeedOrganization] = Field(default_factory=list)
    roles: list[SeedRole] = Field(default_factory=list)
    users: list[SeedUser] = Field(default_factory=list)


def init_db() -> None:
    """
    Create tables, then seed demo tenants/roles/users if the DB is empty.
    """

    Base.metadata.create_all(bind=engine)

    settings = get_settings()
    if not settings.seed_demo_data:
        return

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        seed(db, load_seed_data(settings.resolved_seed_path()))
        logger.info("Seeded demo data from %s", settings.resolved_seed_path())


def load_seed_data(path: Path) -> SeedData:
    raw: dict[str, Any] = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if "seed" not in raw:
        raise ValueError(f"Missing top-level 'seed' key in seed file: {path}")
    return SeedData.model_validate(raw["seed"])


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Organization.id).limit(1)).first() is not None


def seed(db: Session, data: SeedData) -> None:
    organizations: dict[str, Organization] = {}
    departments: dict[tuple[str, str], Department] = {}

    for entry in data.organizations:
        org = Organization(name=entry.name, type=entry.type, email=entry.email, tier=entry.tier)
        db.add(org)
        db.flush()
        organizations[entry.key] = org

        for name in entry.departments:
            dept = Department(name=name, organization_id=org.id)
            db.add(dept)
            departments[(entry.key, name)] = dept
        for name in entry.companies:
            db.add(Company(name=name, organization_id=org.id))
    db.flush()

    permissions: dict[PermissionGrant, Permission] = {}
    roles: dict[str, Role] = {}
    for entry in data.roles:
        role = Role(
            name=entry.name,
            description=entry.description,
            organization_id=organizations[entry.organization].id if entry.organization else None,
            is_system_role=entry.is_system_role,
        )
        for raw in entry.permissions:
            grant = PermissionGrant.parse(raw)
            if grant not in permissions:
                permissions[grant] = Permission(resource=grant.resource.value, action=grant.action.value)
            role.permissions.append(permissions[grant])
        db.add(role)
        roles[entry.name] = role
    db.flush()

    for entry in data.users:
        org = organizations[entry.organization] if entry.organization else None
        dept = departments[(entry.organization, entry.department)] if org is not None and entry.department else None
        user = User(
            email=entry.email,
            first_name=entry.first_name,
            last_name=entry.last_name,
            role=entry.role.value,
            organization_id=org.id if org is not None else None,
            department_id=dept.id if dept is not None else None,
            is_super_user=entry.is_super_user,
            can_cross_organizations=entry.can_cross_organizations,
            can_cross_departments=entry.can_cross_departments,
        )
        user.roles.extend(roles[name] for name in entry.roles)
        db.add(user)

    db.commit()
