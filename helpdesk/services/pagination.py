from __future__ import annotations

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from helpdesk.schemas.common import Page
from helpdesk.settings import get_settings


def clamp_page(page: int | None, limit: int | None) -> tuple[int, int]:
    settings = get_settings()
    page = max(page or 1, 1)
    limit = limit or settings.default_page_size
    return page, max(1, min(limit, settings.max_page_size))


def paginate(db: Session, stmt: Select, *, page: int | None = None, limit: int | None = None) -> Page:
    """
    Run `stmt` one page at a time.

    Execution options (including `tenant_scope`) are copied onto the count
    query so both see the same rows.
    """

    page, limit = clamp_page(page, limit)

    count_stmt = (
        select(func.count())
        .select_from(stmt.order_by(None).subquery())
        .execution_options(**stmt.get_execution_options())
    )
    total = db.scalar(count_stmt) or 0

    items = list(db.scalars(stmt.limit(limit).offset((page - 1) * limit)).all())
    return Page.build(items, page=page, limit=limit, total_count=total)
