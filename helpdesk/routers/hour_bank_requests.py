from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from helpdesk.db.session import get_db
from helpdesk.models.hour_banks import HourBankRequest, HourBankRequestStatus
from helpdesk.schemas.hour_banks import HourBankRequestCreate, HourBankRequestOut
from helpdesk.security.context import IdentityContext
from helpdesk.security.dependencies import get_identity
from helpdesk.services import hour_banks as service

router = APIRouter(prefix="/hour-bank-requests", tags=["hour_bank_requests"])


@router.get("", response_model=list[HourBankRequestOut])
def list_hour_bank_requests(
    organization_id: int | None = Query(default=None),
    status_: HourBankRequestStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> list[HourBankRequest]:
    return service.list_hour_bank_requests(db, identity, organization_id=organization_id, status=status_)


@router.post("", response_model=HourBankRequestOut, status_code=status.HTTP_201_CREATED)
def submit_hour_bank_request(
    payload: HourBankRequestCreate,
    db: Session = Depends(get_db),
    identity: IdentityContext = Depends(get_identity),
) -> HourBankRequest:
    return service.submit_hour_bank_request(db, identity, payload)
