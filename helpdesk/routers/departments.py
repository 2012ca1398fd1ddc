from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from helpdesk.db.session import get_db
from helpdesk.models.security import User
from helpdesk.models.tenancy import Department
from helpdesk.schemas.security import UserOut
from helpdesk.schemas.tenancy import AssignUserToDepartment, DepartmentCreate, DepartmentOut, DepartmentUpdate
from helpdesk.security.context import IdentityContext
from helpdesk.security.decorators import require_permissions
from helpdesk.security.dependencies import get_identity
from helpdesk.services import departments as service

router = APIRouter(prefix="/departments", tags=["departments"])


@router.get("", response_model=list[DepartmentOut])
def list_departments(
    organization_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> list[Department]:
    return service.list_departments(db, identity, organization_id)


@router.get("/{department_id}", response_model=DepartmentOut)
def get_department(
    department_id: int,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> Department:
    return service.get_department(db, identity, department_id)


@router.post("", response_model=DepartmentOut, status_code=status.HTTP_201_CREATED)
def create_department(
    payload: DepartmentCreate,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> Department:
    return service.create_department(db, identity, payload)


@router.put("/{department_id}", response_model=DepartmentOut)
def update_department(
    department_id: int,
    payload: DepartmentUpdate,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> Department:
    return service.update_department(db, identity, department_id, payload)


@router.post("/{department_id}/assign-user", response_model=UserOut)
@require_permissions("users:update")
def assign_user(
    department_id: int,
    payload: AssignUserToDepartment,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> User:
    return service.assign_user_to_department(db, identity, department_id, payload.user_id)
