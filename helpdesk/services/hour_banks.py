"""
Hour banks and hour-bank requests.

A request moves pending -> approved | rejected exactly once. The guard is the
conditional UPDATE on `status = 'pending'`: whoever updates the row wins, and
any other caller sees zero affected rows and gets ConflictingStateTransition.
Approval credits the bank in the same transaction as the status change.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from helpdesk.errors import Conflict, ConflictingStateTransition, InvalidRequest, NotFound
from helpdesk.models.hour_banks import HourBank, HourBankRequest, HourBankRequestStatus
from helpdesk.models.tenancy import Company, Organization
from helpdesk.schemas.hour_banks import HourBankRequestCreate, ProcessAction
from helpdesk.security.context import IdentityContext
from helpdesk.security.guards import require_identity, require_organization_access, require_system_staff
from helpdesk.security.scope import organization_in_scope

logger = logging.getLogger(__name__)


def list_hour_banks(db: Session, identity: IdentityContext | None, organization_id: int) -> list[HourBank]:
    actor = require_identity(identity)
    if not (actor.is_system_staff or organization_in_scope(actor, organization_id)):
        logger.info("Hour bank listing denied user_id=%s organization_id=%s", actor.id, organization_id)
        raise NotFound("Organization not found")

    if db.get(Organization, organization_id) is None:
        raise NotFound("Organization not found")

    stmt = (
        select(HourBank)
        .where(HourBank.organization_id == organization_id)
        .order_by(HourBank.company_id, HourBank.id)
    )
    return list(db.scalars(stmt).all())


def get_active_hour_bank(db: Session, organization_id: int, company_id: int) -> HourBank | None:
    """The single active bank for (organization, company), if any."""

    return db.execute(
        select(HourBank).where(
            HourBank.organization_id == organization_id,
            HourBank.company_id == company_id,
            HourBank.is_active.is_(True),
        )
    ).scalar_one_or_none()


def list_hour_bank_requests(
    db: Session,
    identity: IdentityContext | None,
    *,
    organization_id: int | None = None,
    status: HourBankRequestStatus | None = None,
) -> list[HourBankRequest]:
    actor = require_identity(identity)

    stmt = select(HourBankRequest)
    if not actor.is_system_staff:
        stmt = stmt.execution_options(tenant_scope=actor)
    if organization_id is not None:
        stmt = stmt.where(HourBankRequest.organization_id == organization_id)
    if status is not None:
        stmt = stmt.where(HourBankRequest.status == status)
    return list(db.scalars(stmt.order_by(HourBankRequest.created_at.desc(), HourBankRequest.id.desc())).all())


def submit_hour_bank_request(
    db: Session,
    identity: IdentityContext | None,
    data: HourBankRequestCreate,
) -> HourBankRequest:
    actor = require_organization_access(identity, data.organization_id)

    organization = db.get(Organization, data.organization_id)
    if organization is None or not organization.is_active:
        raise InvalidRequest("Organization not found or inactive")

    company = db.get(Company, data.company_id)
    if company is None or company.organization_id != organization.id:
        raise InvalidRequest("Company does not belong to the organization")

    total_amount: Decimal | None = None
    if data.hourly_rate is not None:
        total_amount = Decimal(data.requested_hours) * data.hourly_rate

    request = HourBankRequest(
        organization_id=organization.id,
        company_id=company.id,
        requested_by_id=actor.id,
        requested_hours=data.requested_hours,
        hourly_rate=data.hourly_rate,
        total_amount=total_amount,
        reason=data.reason,
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info(
        "Hour bank request submitted request_id=%s organization_id=%s company_id=%s hours=%s user_id=%s",
        request.id,
        request.organization_id,
        request.company_id,
        request.requested_hours,
        actor.id,
    )
    return request


def process_hour_bank_request(
    db: Session,
    identity: IdentityContext | None,
    request_id: int,
    action: ProcessAction,
    notes: str | None = None,
) -> HourBankRequest:
    actor = require_system_staff(identity, "Only system users can process hour bank requests")

    request = db.get(HourBankRequest, request_id)
    if request is None:
        raise NotFound("Hour bank request not found")
    if request.status != HourBankRequestStatus.PENDING:
        raise ConflictingStateTransition("Hour bank request already processed")

    new_status = HourBankRequestStatus.APPROVED if action is ProcessAction.APPROVE else HourBankRequestStatus.REJECTED
    now = datetime.utcnow()

    try:
        result = db.execute(
            update(HourBankRequest)
            .where(
                HourBankRequest.id == request.id,
                HourBankRequest.status == HourBankRequestStatus.PENDING,
            )
            .values(status=new_status, approved_by_id=actor.id, approved_at=now, notes=notes, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            logger.info("Hour bank request lost processing race request_id=%s user_id=%s", request_id, actor.id)
            raise ConflictingStateTransition("Hour bank request already processed")

        if new_status is HourBankRequestStatus.APPROVED:
            _credit_hour_bank(db, request, now)

        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Concurrent hour bank creation request_id=%s", request_id)
        raise Conflict("Hour bank was modified concurrently, retry the request") from exc
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to process hour bank request request_id=%s", request_id)
        raise

    db.refresh(request)
    logger.info(
        "Hour bank request processed request_id=%s status=%s user_id=%s",
        request.id,
        request.status.value,
        actor.id,
    )
    return request


def _credit_hour_bank(db: Session, request: HourBankRequest, now: datetime) -> None:
    hours = request.requested_hours
    bank = get_active_hour_bank(db, request.organization_id, request.company_id)

    if bank is None:
        db.add(
            HourBank(
                organization_id=request.organization_id,
                company_id=request.company_id,
                total_hours=hours,
                used_hours=0,
                remaining_hours=hours,
                hourly_rate=request.hourly_rate,
                is_active=True,
            )
        )
        db.flush()
        return

    db.execute(
        update(HourBank)
        .where(HourBank.id == bank.id)
        .values(
            total_hours=HourBank.total_hours + hours,
            remaining_hours=HourBank.remaining_hours + hours,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    # The row was changed in SQL; reload on next access.
    db.expire(bank)
