from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class RoleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    organization_id: int | None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str | None
    last_name: str | None
    role: str
    organization_id: int | None
    department_id: int | None
    is_active: bool


class IdentityOut(BaseModel):
    """The loaded request identity, as returned by `GET /me`."""

    id: int
    role: str
    organization_id: int | None
    organization_type: str | None
    department_id: int | None
    is_super_user: bool
    can_cross_organizations: bool
    can_cross_departments: bool
    permissions: list[str]
    scope: str
