from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from helpdesk.models.tickets import TicketPriority, TicketStatus, TicketType


class TicketOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str | None
    priority: TicketPriority
    status: TicketStatus
    type: TicketType
    organization_id: int
    department_id: int | None
    company_id: int | None
    created_by_id: int | None
    assignee_id: int | None
    client_responsible_id: int | None
    due_date: datetime | None
    resolved_at: datetime | None
    created_at: datetime
    updated_at: datetime


class TicketCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    priority: TicketPriority = TicketPriority.MEDIUM
    type: TicketType = TicketType.SUPPORT
    organization_id: int | None = None
    department_id: int | None = None
    company_id: int | None = None
    client_responsible_id: int | None = None
    due_date: datetime | None = None


class TicketUpdate(BaseModel):
    """
    Generic update payload.

    Unknown keys are accepted and then stripped by the service, so a client that
    sends `organization_id` gets its other changes applied and the tenant left alone.
    """

    model_config = ConfigDict(extra="allow")

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    priority: TicketPriority | None = None
    status: TicketStatus | None = None
    type: TicketType | None = None
    department_id: int | None = None
    client_responsible_id: int | None = None
    due_date: datetime | None = None


class TicketAssign(BaseModel):
    assignee_id: int


class TicketFilters(BaseModel):
    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    organization_id: int | None = None
    assignee_id: int | None = None
