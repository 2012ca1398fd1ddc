from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from helpdesk.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from helpdesk.db.init_db import init_db
from helpdesk.errors import TenantAccessError
from helpdesk.logging_config import configure_app_logging
from helpdesk.routers import client_management, departments, health, hour_bank_requests, me, organizations, tickets
from helpdesk.security.config import load_security_config
from helpdesk.security.dependencies import enforce_security
from helpdesk.settings import get_settings

logger = logging.getLogger(__name__)


async def tenant_access_error_handler(request: Request, exc: TenantAccessError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        app.state.security_config = load_security_config(settings.resolved_security_config_path())
        logger.info("Loaded security config: %s", settings.resolved_security_config_path())
        init_db()
        logger.info("Database initialized (tables ensured + seed if needed)")

        yield

    # Global dependency: route gates run before any handler.
    app = FastAPI(title="Helpdesk", dependencies=[Depends(enforce_security)], lifespan=lifespan)
    app.add_exception_handler(TenantAccessError, tenant_access_error_handler)

    app.include_router(health.router)
    app.include_router(me.router)
    app.include_router(organizations.router)
    app.include_router(departments.router)
    app.include_router(tickets.router)
    app.include_router(client_management.router)
    app.include_router(hour_bank_requests.router)

    return app


app = create_app()
