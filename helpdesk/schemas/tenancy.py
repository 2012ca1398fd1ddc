from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from helpdesk.models.tenancy import OrganizationType


class OrganizationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    type: OrganizationType
    email: str | None
    tier: str
    is_active: bool
    created_at: datetime


class OrganizationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    type: OrganizationType = OrganizationType.CLIENT_COMPANY
    email: str | None = None
    tier: str = "basic"


class OrganizationUpdate(BaseModel):
    # `type` is deliberately absent: organizations never change type.
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = None
    tier: str | None = None
    is_active: bool | None = None


class DepartmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    organization_id: int
    parent_department_id: int | None
    manager_id: int | None
    is_active: bool


class DepartmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    organization_id: int | None = None
    parent_department_id: int | None = None
    manager_id: int | None = None


class DepartmentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = None
    parent_department_id: int | None = None
    manager_id: int | None = None
    is_active: bool | None = None


class AssignUserToDepartment(BaseModel):
    user_id: int


class CompanyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    name: str
    is_active: bool
