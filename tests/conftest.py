"""
Pytest fixtures for the test suite.

Database tests use an in-memory SQLite engine and a session joined to an outer
transaction that is rolled back after each test. Service code commits freely:
its commits land in SAVEPOINTs inside that transaction.
"""
from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from helpdesk import models  # noqa: F401  (register all tables)
from helpdesk.db import filters as _filters  # noqa: F401  (register tenant scoping hook)
from helpdesk.db.base import Base
from helpdesk.models import (
    Company,
    Department,
    HourBankRequest,
    Organization,
    OrganizationType,
    Permission,
    Role,
    Ticket,
    User,
)
from helpdesk.security.context import IdentityContext
from helpdesk.security.permissions import PermissionGrant


TEST_DB_URL = "sqlite:///:memory:"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )

    # pysqlite defers BEGIN on its own; take over so SAVEPOINTs nest properly.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
        join_transaction_mode="create_savepoint",
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def file_sessionmaker(tmp_path):
    """
    Sessions on a file-backed SQLite DB, for tests that need two independent
    connections (e.g. two approvers racing on the same request).
    """
    file_engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=file_engine)
    yield sessionmaker(bind=file_engine, autocommit=False, autoflush=False, class_=Session)
    file_engine.dispose()


class Factory:
    """Small builders for tenant rows; every call flushes so ids are available."""

    def __init__(self, db: Session):
        self.db = db
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def _save(self, obj):
        self.db.add(obj)
        self.db.flush()
        return obj

    def organization(self, name: str | None = None, type: OrganizationType = OrganizationType.CLIENT_COMPANY, **kw):
        return self._save(Organization(name=name or f"Org {self._next()}", type=type, **kw))

    def department(self, organization: Organization, name: str | None = None, **kw):
        return self._save(Department(name=name or f"Dept {self._next()}", organization_id=organization.id, **kw))

    def company(self, organization: Organization, name: str | None = None, **kw):
        return self._save(Company(name=name or f"Company {self._next()}", organization_id=organization.id, **kw))

    def user(
        self,
        organization: Organization | None = None,
        department: Department | None = None,
        *,
        role: str = "company_user",
        **kw,
    ):
        n = self._next()
        return self._save(
            User(
                email=kw.pop("email", f"user{n}@example.com"),
                role=role,
                organization_id=organization.id if organization is not None else None,
                department_id=department.id if department is not None else None,
                **kw,
            )
        )

    def role(self, name: str, permissions: list[str], organization: Organization | None = None, **kw):
        role = Role(name=name, organization_id=organization.id if organization is not None else None, **kw)
        for raw in permissions:
            resource, _, action = raw.partition(":")
            permission = self.db.query(Permission).filter_by(resource=resource, action=action).one_or_none()
            if permission is None:
                permission = Permission(resource=resource, action=action)
            role.permissions.append(permission)
        return self._save(role)

    def ticket(self, organization: Organization, department: Department | None = None, **kw):
        return self._save(
            Ticket(
                title=kw.pop("title", f"Ticket {self._next()}"),
                organization_id=organization.id,
                department_id=department.id if department is not None else None,
                **kw,
            )
        )

    def hour_bank_request(self, organization: Organization, company: Company, requested_by: User, hours: int = 10, **kw):
        return self._save(
            HourBankRequest(
                organization_id=organization.id,
                company_id=company.id,
                requested_by_id=requested_by.id,
                requested_hours=hours,
                hourly_rate=kw.pop("hourly_rate", Decimal("50.00")),
                **kw,
            )
        )


@pytest.fixture
def factory(db_session) -> Factory:
    return Factory(db_session)


def identity_for(user: User, permissions: tuple[str, ...] = (), organization_type=None) -> IdentityContext:
    """IdentityContext for a row built by `Factory`, without going through the loader."""
    return IdentityContext(
        id=user.id,
        role=user.role,
        organization_id=user.organization_id,
        department_id=user.department_id,
        is_super_user=user.is_super_user,
        can_cross_organizations=user.can_cross_organizations,
        can_cross_departments=user.can_cross_departments,
        permissions=frozenset(PermissionGrant.parse(p) for p in permissions),
        organization_type=organization_type
        or (user.organization.type if user.organization is not None else None),
    )


@pytest.fixture
def as_identity():
    return identity_for


@pytest.fixture
def make_identity():
    """Build a bare IdentityContext; no database rows involved."""

    def _make(
        id: int = 1,
        role: str = "company_agent",
        organization_id: int | None = None,
        department_id: int | None = None,
        permissions: tuple[str, ...] = (),
        **kw,
    ) -> IdentityContext:
        return IdentityContext(
            id=id,
            role=role,
            organization_id=organization_id,
            department_id=department_id,
            permissions=frozenset(PermissionGrant.parse(p) for p in permissions),
            **kw,
        )

    return _make
