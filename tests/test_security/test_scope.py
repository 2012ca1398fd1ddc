"""
Scope resolver tests.

The enumeration form (scoped SQL) and the membership form (pure functions)
must give identical answers, so most tests here check both.
"""
from __future__ import annotations

import dataclasses
import itertools

import pytest
from sqlalchemy import select

from helpdesk.models import Organization, OrganizationType, Ticket
from helpdesk.security.context import EffectiveScope, ScopeKind
from helpdesk.security.scope import (
    accessible_department_ids,
    accessible_organization_ids,
    department_in_scope,
    organization_in_scope,
    ticket_visible,
)


@pytest.mark.parametrize(
    ("flags", "expected"),
    [
        (dict(is_super_user=True), ScopeKind.GLOBAL),
        (dict(can_cross_organizations=True), ScopeKind.GLOBAL),
        (dict(can_cross_departments=True), ScopeKind.ORGANIZATION_DEPARTMENTS),
        (dict(), ScopeKind.DEPARTMENT),
    ],
)
def test_effective_scope_variants(flags, expected):
    scope = EffectiveScope.resolve(
        organization_id=1,
        department_id=10,
        is_super_user=flags.get("is_super_user", False),
        can_cross_organizations=flags.get("can_cross_organizations", False),
        can_cross_departments=flags.get("can_cross_departments", False),
    )
    assert scope.kind is expected


def test_effective_scope_without_placement():
    kwargs = dict(is_super_user=False, can_cross_organizations=False)
    assert EffectiveScope.resolve(organization_id=1, department_id=None, can_cross_departments=False, **kwargs).kind is ScopeKind.ORGANIZATION
    assert EffectiveScope.resolve(organization_id=None, department_id=None, can_cross_departments=False, **kwargs).kind is ScopeKind.NONE
    # Cross-department without an organization has nothing to cross.
    assert EffectiveScope.resolve(organization_id=None, department_id=None, can_cross_departments=True, **kwargs).kind is ScopeKind.NONE


def test_identity_scope_is_computed_once(make_identity):
    actor = make_identity(organization_id=1, department_id=10)
    assert actor.scope == EffectiveScope(ScopeKind.DEPARTMENT, organization_id=1, department_id=10)
    with pytest.raises(dataclasses.FrozenInstanceError):
        actor.organization_id = 2  # frozen


@pytest.fixture
def two_tenants(factory):
    acme = factory.organization("Acme")
    globex = factory.organization("Globex")
    depts = {
        "acme_it": factory.department(acme, "IT"),
        "acme_support": factory.department(acme, "Support"),
        "globex_it": factory.department(globex, "IT"),
    }
    return acme, globex, depts


ALL_FLAGS = list(itertools.product([False, True], repeat=3))


@pytest.mark.parametrize(("cross_orgs", "cross_depts"), list(itertools.product([False, True], repeat=2)))
def test_super_user_scope_is_always_full(db_session, two_tenants, make_identity, cross_orgs, cross_depts):
    acme, globex, depts = two_tenants
    actor = make_identity(
        organization_id=acme.id,
        department_id=depts["acme_it"].id,
        is_super_user=True,
        can_cross_organizations=cross_orgs,
        can_cross_departments=cross_depts,
    )
    assert accessible_organization_ids(db_session, actor) == {acme.id, globex.id}
    assert accessible_department_ids(db_session, actor) == {d.id for d in depts.values()}
    assert all(organization_in_scope(actor, o.id) for o in (acme, globex))


def test_plain_actor_sees_only_own_organization(db_session, two_tenants, make_identity):
    acme, globex, depts = two_tenants
    actor = make_identity(organization_id=acme.id, department_id=depts["acme_it"].id)

    assert accessible_organization_ids(db_session, actor) == {acme.id}
    assert organization_in_scope(actor, acme.id)
    assert not organization_in_scope(actor, globex.id)
    assert not organization_in_scope(actor, None)


def test_cross_department_actor_covers_exactly_its_organization(db_session, two_tenants, make_identity):
    acme, globex, depts = two_tenants
    actor = make_identity(organization_id=acme.id, can_cross_departments=True)

    ids = accessible_department_ids(db_session, actor)
    assert ids == {depts["acme_it"].id, depts["acme_support"].id}
    assert depts["globex_it"].id not in ids


def test_department_filter_restricts_enumeration(db_session, two_tenants, make_identity):
    acme, globex, depts = two_tenants
    actor = make_identity(is_super_user=True)
    assert accessible_department_ids(db_session, actor, organization_id=globex.id) == {depts["globex_it"].id}


def test_scopeless_actor_sees_nothing(db_session, two_tenants, make_identity):
    actor = make_identity()
    assert accessible_organization_ids(db_session, actor) == set()
    assert accessible_department_ids(db_session, actor) == set()


@pytest.mark.parametrize(("is_super_user", "cross_orgs", "cross_depts"), ALL_FLAGS)
@pytest.mark.parametrize("placement", ["acme_it", "acme_org_only", "none"])
def test_membership_matches_enumeration(db_session, two_tenants, make_identity, is_super_user, cross_orgs, cross_depts, placement):
    acme, globex, depts = two_tenants
    organization_id = acme.id if placement != "none" else None
    department_id = depts["acme_it"].id if placement == "acme_it" else None
    actor = make_identity(
        organization_id=organization_id,
        department_id=department_id,
        is_super_user=is_super_user,
        can_cross_organizations=cross_orgs,
        can_cross_departments=cross_depts,
    )

    org_ids = accessible_organization_ids(db_session, actor)
    for org in (acme, globex):
        assert (org.id in org_ids) == organization_in_scope(actor, org.id)

    for filter_org in (None, acme.id, globex.id):
        dept_ids = accessible_department_ids(db_session, actor, organization_id=filter_org)
        for dept in depts.values():
            assert (dept.id in dept_ids) == department_in_scope(
                actor, dept.id, dept.organization_id, organization_id=filter_org
            )


@pytest.mark.parametrize(("is_super_user", "cross_orgs", "cross_depts"), ALL_FLAGS)
def test_ticket_visibility_matches_scoped_query(db_session, factory, two_tenants, make_identity, is_super_user, cross_orgs, cross_depts):
    acme, globex, depts = two_tenants
    creator = factory.user(acme, depts["acme_support"])
    tickets = [
        factory.ticket(acme, depts["acme_it"]),
        factory.ticket(acme, depts["acme_support"]),
        factory.ticket(acme, None),
        factory.ticket(globex, depts["globex_it"]),
        factory.ticket(globex, None, created_by_id=creator.id),
        factory.ticket(globex, None, assignee_id=creator.id),
    ]
    actor = make_identity(
        id=creator.id,
        organization_id=acme.id,
        department_id=depts["acme_it"].id,
        is_super_user=is_super_user,
        can_cross_organizations=cross_orgs,
        can_cross_departments=cross_depts,
    )

    visible = {t.id for t in db_session.scalars(select(Ticket).execution_options(tenant_scope=actor))}
    for ticket in tickets:
        assert (ticket.id in visible) == ticket_visible(actor, ticket)


def test_alternate_grants_reach_out_of_scope_tickets(db_session, factory, two_tenants, make_identity):
    acme, globex, depts = two_tenants
    me = factory.user(acme, depts["acme_it"])
    created = factory.ticket(globex, depts["globex_it"], created_by_id=me.id)
    assigned = factory.ticket(globex, None, assignee_id=me.id)
    responsible = factory.ticket(acme, depts["acme_support"], client_responsible_id=me.id)
    other = factory.ticket(acme, depts["acme_support"])

    actor = make_identity(id=me.id, organization_id=acme.id, department_id=depts["acme_it"].id)
    visible = {t.id for t in db_session.scalars(select(Ticket).execution_options(tenant_scope=actor))}

    assert visible == {created.id, assigned.id, responsible.id}
    assert other.id not in visible


def test_queries_without_tenant_scope_are_untouched(db_session, two_tenants):
    acme, globex, _ = two_tenants
    all_ids = set(db_session.scalars(select(Organization.id)))
    assert all_ids == {acme.id, globex.id}


def test_scoped_relationship_loads_are_not_filtered(db_session, two_tenants, make_identity):
    acme, _, depts = two_tenants
    actor = make_identity(organization_id=acme.id, department_id=depts["acme_it"].id)

    org = db_session.scalars(select(Organization).execution_options(tenant_scope=actor)).one()
    db_session.expire(org, ["departments"])
    # Only this statement is scoped; the lazy load sees every department of the org.
    assert {d.name for d in org.departments} == {"IT", "Support"}
    assert org.type is OrganizationType.CLIENT_COMPANY
