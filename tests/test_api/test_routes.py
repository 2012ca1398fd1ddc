"""
HTTP-level tests: the global security dependency, the error mapping and a
few end-to-end flows against the shipped seed data.

The app lifespan is not run; the security config is loaded directly and
`get_db` is overridden with the rolled-back test session.
"""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

from helpdesk.db.init_db import load_seed_data, seed
from helpdesk.db.session import get_db
from helpdesk.main import create_app
from helpdesk.models import Company, Department
from helpdesk.security.config import load_security_config
from helpdesk.settings import Settings

# Seed user ids, in file order.
ROOT, SYSADMIN, TECH, ACME_ADMIN, ACME_AGENT, ACME_USER, GLOBEX_ADMIN = range(1, 8)


@pytest.fixture
def client(db_session):
    settings = Settings()
    seed(db_session, load_seed_data(settings.resolved_seed_path()))

    app = create_app()
    app.state.security_config = load_security_config(settings.resolved_security_config_path())

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    return TestClient(app)


def _auth(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {user_id}"}


def test_health_is_public(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_missing_token_is_401(client):
    resp = client.get("/me")
    assert resp.status_code == 401
    assert resp.json()["error"] == "Unauthenticated"


def test_unknown_user_is_401(client):
    assert client.get("/me", headers=_auth(999)).status_code == 401


def test_malformed_token_is_400(client):
    assert client.get("/me", headers={"Authorization": "Bearer abc"}).status_code == 400


def test_me_echoes_identity(client):
    body = client.get("/me", headers=_auth(ACME_AGENT)).json()
    assert body["role"] == "company_agent"
    assert body["organization_type"] == "client_company"
    assert body["scope"] == "department"
    assert "tickets:create" in body["permissions"]
    assert body["permissions"] == sorted(body["permissions"])


def test_route_permission_gate(client):
    # company_user has no departments:read grant.
    resp = client.get("/departments", headers=_auth(ACME_USER))
    assert resp.status_code == 403
    assert resp.json()["error"] == "PermissionDenied"


def test_assign_user_gate_merges_decorator_grants(client, db_session):
    acme = client.get("/me", headers=_auth(ACME_ADMIN)).json()["organization_id"]
    it = db_session.scalars(select(Department.id).where(Department.organization_id == acme, Department.name == "IT")).one()

    denied = client.post(f"/departments/{it}/assign-user", json={"user_id": ACME_USER}, headers=_auth(ACME_AGENT))
    assert denied.status_code == 403
    assert "departments:manage" in denied.json()["detail"]
    assert "users:update" in denied.json()["detail"]

    moved = client.post(f"/departments/{it}/assign-user", json={"user_id": ACME_USER}, headers=_auth(ACME_ADMIN))
    assert moved.status_code == 200
    assert moved.json()["department_id"] == it


def test_ticket_flow_within_tenant(client):
    created = client.post("/tickets", json={"title": "VPN down"}, headers=_auth(ACME_AGENT))
    assert created.status_code == 201
    ticket = created.json()
    me = client.get("/me", headers=_auth(ACME_AGENT)).json()
    assert ticket["organization_id"] == me["organization_id"]
    assert ticket["department_id"] == me["department_id"]

    listed = client.get("/tickets", headers=_auth(ACME_AGENT)).json()
    assert listed["total_count"] == 1
    assert listed["items"][0]["id"] == ticket["id"]

    # Another tenant cannot see it; existence is hidden.
    resp = client.get(f"/tickets/{ticket['id']}", headers=_auth(GLOBEX_ADMIN))
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Ticket not found", "error": "NotFound"}


def test_create_ticket_for_other_organization_is_403(client):
    globex_id = client.get("/me", headers=_auth(GLOBEX_ADMIN)).json()["organization_id"]
    resp = client.post("/tickets", json={"title": "x", "organization_id": globex_id}, headers=_auth(ACME_ADMIN))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Cannot create ticket for different organization"


def test_system_tech_assignment_over_http(client):
    ticket = client.post("/tickets", json={"title": "Server room flooded"}, headers=_auth(ACME_ADMIN)).json()

    resp = client.put(f"/tickets/{ticket['id']}/assign-system-tech", json={"assignee_id": TECH}, headers=_auth(SYSADMIN))
    assert resp.status_code == 200
    assert resp.json()["assignee_id"] == TECH

    # Client admins hold tickets:assign but are not system staff.
    denied = client.put(f"/tickets/{ticket['id']}/assign-system-tech", json={"assignee_id": TECH}, headers=_auth(ACME_ADMIN))
    assert denied.status_code == 403


def test_client_management_is_staff_only(client):
    assert client.get("/client-management/organizations", headers=_auth(SYSADMIN)).status_code == 200
    assert client.get("/client-management/organizations", headers=_auth(ACME_ADMIN)).status_code == 403


def test_hour_bank_request_lifecycle(client, db_session):
    acme = client.get("/me", headers=_auth(ACME_ADMIN)).json()["organization_id"]
    assert client.get(f"/client-management/organizations/{acme}", headers=_auth(SYSADMIN)).status_code == 200
    company_id = db_session.scalars(select(Company.id).where(Company.organization_id == acme)).first()

    submitted = client.post(
        "/hour-bank-requests",
        json={"organization_id": acme, "company_id": company_id, "requested_hours": 20, "hourly_rate": "45.00"},
        headers=_auth(ACME_ADMIN),
    )
    assert submitted.status_code == 201
    request_id = submitted.json()["id"]

    approved = client.put(
        f"/client-management/hour-bank-requests/{request_id}/process",
        json={"action": "approve"},
        headers=_auth(SYSADMIN),
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"

    again = client.put(
        f"/client-management/hour-bank-requests/{request_id}/process",
        json={"action": "reject"},
        headers=_auth(SYSADMIN),
    )
    assert again.status_code == 409

    banks = client.get(f"/client-management/organizations/{acme}/hour-banks", headers=_auth(ACME_ADMIN)).json()
    assert [b["total_hours"] for b in banks] == [20]


def test_validation_errors_are_422(client):
    resp = client.post("/tickets", json={"title": ""}, headers=_auth(ACME_AGENT))
    assert resp.status_code == 422
