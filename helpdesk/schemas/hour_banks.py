from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from helpdesk.models.hour_banks import HourBankRequestStatus


class HourBankOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    company_id: int
    total_hours: int
    used_hours: int
    remaining_hours: int
    hourly_rate: Decimal | None
    is_active: bool


class HourBankRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    organization_id: int
    company_id: int
    requested_by_id: int
    requested_hours: int
    hourly_rate: Decimal | None
    total_amount: Decimal | None
    reason: str | None
    status: HourBankRequestStatus
    approved_by_id: int | None
    approved_at: datetime | None
    notes: str | None


class HourBankRequestCreate(BaseModel):
    organization_id: int
    company_id: int
    requested_hours: int = Field(gt=0)
    hourly_rate: Decimal | None = Field(default=None, ge=0)
    reason: str | None = None


class ProcessAction(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


class ProcessHourBankRequest(BaseModel):
    action: ProcessAction
    notes: str | None = None
