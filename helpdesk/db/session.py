from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from helpdesk.settings import get_settings


_settings = get_settings()

engine = create_engine(
    _settings.resolved_db_url(),
    connect_args={"check_same_thread": False} if _settings.resolved_db_url().startswith("sqlite") else {},
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    """
    Main DB dependency.

    The session carries no authorization state of its own. Queries that must be
    tenant-scoped say so explicitly with `.execution_options(tenant_scope=identity)`;
    see `helpdesk.db.filters`.
    """

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
