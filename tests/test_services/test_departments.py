"""Department operation tests."""
from __future__ import annotations

import pytest

from helpdesk.errors import AlternateGrantDenied, InvalidRequest, NotFound, PermissionDenied, ScopeDenied
from helpdesk.schemas.tenancy import DepartmentCreate, DepartmentUpdate
from helpdesk.services import departments as service


@pytest.fixture
def tenants(factory):
    acme = factory.organization("Acme")
    globex = factory.organization("Globex")
    return {
        "acme": acme,
        "globex": globex,
        "acme_it": factory.department(acme, "IT"),
        "acme_support": factory.department(acme, "Support"),
        "globex_it": factory.department(globex, "IT"),
    }


def test_list_is_scoped_with_optional_filter(db_session, tenants, make_identity):
    cross = make_identity(organization_id=tenants["acme"].id, can_cross_departments=True)
    names = {(d.organization_id, d.name) for d in service.list_departments(db_session, cross)}
    assert names == {(tenants["acme"].id, "IT"), (tenants["acme"].id, "Support")}

    root = make_identity(is_super_user=True)
    only_globex = service.list_departments(db_session, root, tenants["globex"].id)
    assert [d.id for d in only_globex] == [tenants["globex_it"].id]


def test_get_outside_scope_is_not_found(db_session, tenants, make_identity):
    actor = make_identity(organization_id=tenants["acme"].id, department_id=tenants["acme_it"].id)
    assert service.get_department(db_session, actor, tenants["acme_it"].id).name == "IT"
    with pytest.raises(NotFound):
        service.get_department(db_session, actor, tenants["acme_support"].id)


def test_company_admin_creates_in_own_organization(db_session, tenants, make_identity):
    admin = make_identity(role="company_admin", organization_id=tenants["acme"].id)
    dept = service.create_department(
        db_session,
        admin,
        DepartmentCreate(name="Finance", parent_department_id=tenants["acme_it"].id),
    )
    assert dept.organization_id == tenants["acme"].id
    assert dept.parent_department_id == tenants["acme_it"].id


def test_company_admin_cannot_create_in_other_organization(db_session, tenants, make_identity):
    admin = make_identity(role="company_admin", organization_id=tenants["acme"].id)
    with pytest.raises(ScopeDenied, match="different organization"):
        service.create_department(db_session, admin, DepartmentCreate(name="x", organization_id=tenants["globex"].id))


def test_agent_cannot_create_departments(db_session, tenants, make_identity):
    agent = make_identity(role="company_agent", organization_id=tenants["acme"].id)
    with pytest.raises(PermissionDenied):
        service.create_department(db_session, agent, DepartmentCreate(name="x"))


def test_system_admin_manages_any_organization(db_session, tenants, make_identity):
    sysadmin = make_identity(role="system_admin", organization_id=999)
    dept = service.create_department(db_session, sysadmin, DepartmentCreate(name="Ops", organization_id=tenants["globex"].id))
    assert dept.organization_id == tenants["globex"].id


def test_parent_must_be_same_organization(db_session, tenants, make_identity):
    root = make_identity(is_super_user=True)
    with pytest.raises(InvalidRequest, match="same organization"):
        service.create_department(
            db_session,
            root,
            DepartmentCreate(name="x", organization_id=tenants["acme"].id, parent_department_id=tenants["globex_it"].id),
        )


def test_manager_must_belong_to_organization(db_session, factory, tenants, make_identity):
    outsider = factory.user(tenants["globex"])
    root = make_identity(is_super_user=True)
    with pytest.raises(InvalidRequest, match="Manager must belong"):
        service.create_department(
            db_session,
            root,
            DepartmentCreate(name="x", organization_id=tenants["acme"].id, manager_id=outsider.id),
        )


def test_update_ignores_organization_and_rejects_cycles(db_session, tenants, make_identity):
    root = make_identity(is_super_user=True)
    it, support = tenants["acme_it"], tenants["acme_support"]

    service.update_department(db_session, root, support.id, DepartmentUpdate(parent_department_id=it.id))
    with pytest.raises(InvalidRequest, match="cycles"):
        service.update_department(db_session, root, it.id, DepartmentUpdate(parent_department_id=support.id))
    with pytest.raises(InvalidRequest, match="cycles"):
        service.update_department(db_session, root, it.id, DepartmentUpdate(parent_department_id=it.id))


def test_update_by_manager_of_other_organization_is_hidden(db_session, tenants, make_identity):
    manager = make_identity(role="company_manager", organization_id=tenants["acme"].id, department_id=tenants["acme_it"].id)
    with pytest.raises(AlternateGrantDenied):
        service.update_department(db_session, manager, tenants["globex_it"].id, DepartmentUpdate(name="x"))


def test_visible_department_but_no_manage_role_is_forbidden(db_session, tenants, make_identity):
    agent = make_identity(role="company_agent", organization_id=tenants["acme"].id, department_id=tenants["acme_it"].id)
    with pytest.raises(PermissionDenied) as exc_info:
        service.update_department(db_session, agent, tenants["acme_it"].id, DepartmentUpdate(name="Renamed"))
    assert exc_info.value.status_code == 403


def test_assign_user_to_department(db_session, factory, tenants, make_identity):
    member = factory.user(tenants["acme"], tenants["acme_it"])
    outsider = factory.user(tenants["globex"])
    manager = make_identity(role="company_manager", organization_id=tenants["acme"].id)

    moved = service.assign_user_to_department(db_session, manager, tenants["acme_support"].id, member.id)
    assert moved.department_id == tenants["acme_support"].id

    with pytest.raises(InvalidRequest, match="User must belong"):
        service.assign_user_to_department(db_session, manager, tenants["acme_support"].id, outsider.id)
