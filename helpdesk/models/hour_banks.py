from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from helpdesk.db.base import Base, value_enum
from helpdesk.models.tenancy import Company, Organization


class HourBankRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class HourBank(Base):
    """Prepaid pool of service hours for one company of a client organization."""

    __tablename__ = "hour_banks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False, index=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False)

    total_hours: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    used_hours: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    remaining_hours: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    organization: Mapped[Organization] = relationship()
    company: Mapped[Company] = relationship()


class HourBankRequest(Base):
    __tablename__ = "hour_bank_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id"), nullable=False, index=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), nullable=False)
    requested_by_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    requested_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # pending -> approved | rejected, exactly once.
    status: Mapped[HourBankRequestStatus] = mapped_column(
        value_enum(HourBankRequestStatus), default=HourBankRequestStatus.PENDING, nullable=False, index=True
    )
    approved_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    organization: Mapped[Organization] = relationship()
    company: Mapped[Company] = relationship()


# At most one active bank per (organization, company).
Index(
    "uq_hour_banks_active_company",
    HourBank.organization_id,
    HourBank.company_id,
    unique=True,
    sqlite_where=HourBank.is_active,
    postgresql_where=HourBank.is_active,
)
