from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from helpdesk.errors import AlternateGrantDenied, InvalidRequest, NotFound, PermissionDenied, ScopeDenied
from helpdesk.models.security import User, UserRole
from helpdesk.models.tenancy import Department, Organization
from helpdesk.schemas.tenancy import DepartmentCreate, DepartmentUpdate
from helpdesk.security.context import IdentityContext
from helpdesk.security.guards import require_identity
from helpdesk.security.scope import department_in_scope

logger = logging.getLogger(__name__)

ORGANIZATION_MANAGER_ROLES = frozenset({UserRole.COMPANY_ADMIN.value, UserRole.COMPANY_MANAGER.value})


def can_manage_departments(identity: IdentityContext, organization_id: int) -> bool:
    """
    Global scope, a system admin, or an admin/manager of that same organization.
    """

    if identity.scope.is_global:
        return True
    if identity.role == UserRole.SYSTEM_ADMIN.value:
        return True
    return identity.organization_id == organization_id and identity.role in ORGANIZATION_MANAGER_ROLES


def list_departments(
    db: Session,
    identity: IdentityContext | None,
    organization_id: int | None = None,
) -> list[Department]:
    actor = require_identity(identity)
    stmt = select(Department).execution_options(tenant_scope=actor)
    if organization_id is not None:
        stmt = stmt.where(Department.organization_id == organization_id)
    return list(db.scalars(stmt.order_by(Department.organization_id, Department.name)).all())


def get_department(db: Session, identity: IdentityContext | None, department_id: int) -> Department:
    actor = require_identity(identity)
    department = db.scalars(
        select(Department).where(Department.id == department_id).execution_options(tenant_scope=actor)
    ).first()
    if department is None:
        raise NotFound("Department not found")
    return department


def create_department(db: Session, identity: IdentityContext | None, data: DepartmentCreate) -> Department:
    actor = require_identity(identity)

    organization_id = data.organization_id if data.organization_id is not None else actor.organization_id
    if organization_id is None:
        raise InvalidRequest("Organization is required to create a department")

    if not can_manage_departments(actor, organization_id):
        logger.info(
            "Department create denied user_id=%s role=%s organization_id=%s target=%s",
            actor.id,
            actor.role,
            actor.organization_id,
            organization_id,
        )
        if actor.organization_id != organization_id:
            raise ScopeDenied("Cannot create department for different organization")
        raise PermissionDenied("Insufficient role to create departments")

    organization = db.get(Organization, organization_id)
    if organization is None or not organization.is_active:
        raise InvalidRequest("Organization not found or inactive")

    if data.parent_department_id is not None:
        _require_same_organization_department(db, data.parent_department_id, organization_id)
    if data.manager_id is not None:
        _require_member(db, data.manager_id, organization_id, "Manager must belong to the department organization")

    department = Department(
        name=data.name,
        description=data.description,
        organization_id=organization_id,
        parent_department_id=data.parent_department_id,
        manager_id=data.manager_id,
    )
    db.add(department)
    db.commit()
    db.refresh(department)
    logger.info(
        "Department created department_id=%s organization_id=%s user_id=%s",
        department.id,
        organization_id,
        actor.id,
    )
    return department


def update_department(
    db: Session,
    identity: IdentityContext | None,
    department_id: int,
    data: DepartmentUpdate,
) -> Department:
    actor = require_identity(identity)
    department = _load_department_for_mutation(db, actor, department_id)

    changes = data.model_dump(exclude_unset=True)
    changes.pop("organization_id", None)
    if "name" in changes and changes["name"] is None:
        changes.pop("name")
    if "is_active" in changes and changes["is_active"] is None:
        changes.pop("is_active")

    parent_id = changes.get("parent_department_id")
    if parent_id is not None and parent_id != department.parent_department_id:
        _require_same_organization_department(db, parent_id, department.organization_id)
        _require_no_cycle(db, department.id, parent_id)

    if changes.get("manager_id") is not None:
        _require_member(
            db,
            changes["manager_id"],
            department.organization_id,
            "Manager must belong to the department organization",
        )

    for key, value in changes.items():
        setattr(department, key, value)

    db.commit()
    db.refresh(department)
    logger.info("Department updated department_id=%s user_id=%s fields=%s", department.id, actor.id, sorted(changes))
    return department


def assign_user_to_department(
    db: Session,
    identity: IdentityContext | None,
    department_id: int,
    user_id: int,
) -> User:
    actor = require_identity(identity)
    department = _load_department_for_mutation(db, actor, department_id)

    user = _require_member(db, user_id, department.organization_id, "User must belong to the department organization")
    user.department_id = department.id

    db.commit()
    db.refresh(user)
    logger.info(
        "User assigned to department user_id=%s department_id=%s actor_id=%s",
        user.id,
        department.id,
        actor.id,
    )
    return user


def _load_department_for_mutation(db: Session, actor: IdentityContext, department_id: int) -> Department:
    department = db.get(Department, department_id)
    if department is None:
        raise NotFound("Department not found")

    visible = department_in_scope(actor, department.id, department.organization_id)
    manageable = can_manage_departments(actor, department.organization_id)
    if not visible and not manageable:
        logger.info("Department access denied user_id=%s department_id=%s", actor.id, department_id)
        raise AlternateGrantDenied("Department not found")
    if not manageable:
        logger.info("Department mutation denied user_id=%s role=%s department_id=%s", actor.id, actor.role, department_id)
        raise PermissionDenied("Insufficient role to manage departments")
    return department


def _require_same_organization_department(db: Session, department_id: int, organization_id: int) -> Department:
    department = db.get(Department, department_id)
    if department is None or department.organization_id != organization_id:
        raise InvalidRequest("Parent department must belong to the same organization")
    return department


def _require_no_cycle(db: Session, department_id: int, new_parent_id: int) -> None:
    seen: set[int] = set()
    current: int | None = new_parent_id
    while current is not None and current not in seen:
        if current == department_id:
            raise InvalidRequest("Department hierarchy cannot contain cycles")
        seen.add(current)
        current = db.scalar(select(Department.parent_department_id).where(Department.id == current))


def _require_member(db: Session, user_id: int, organization_id: int, reason: str) -> User:
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise InvalidRequest("User not found or inactive")
    if user.organization_id != organization_id:
        raise InvalidRequest(reason)
    return user
