from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session, with_loader_criteria


@event.listens_for(Session, "do_orm_execute")
def _apply_tenant_scope(execute_state) -> None:
    """
    Tenant visibility for enumeration queries.

    Opt-in per statement:
        select(Ticket).execution_options(tenant_scope=identity)
    returns only the rows `identity` may see. Statements without the option
    are not touched, so mutations can load their target and decide between
    404 and 403 themselves.
    """

    if not execute_state.is_select:
        return

    identity = execute_state.execution_options.get("tenant_scope")
    if identity is None:
        return

    # Local import to avoid cycles.
    from helpdesk.security.scope import TENANT_SCOPED_MODELS, criteria_for

    options = []
    for model in TENANT_SCOPED_MODELS:
        criteria = criteria_for(model, identity)
        if criteria is not None:
            # Only this statement; relationship loads triggered later stay unscoped.
            options.append(with_loader_criteria(model, criteria, propagate_to_loaders=False))

    if options:
        execute_state.statement = execute_state.statement.options(*options)
