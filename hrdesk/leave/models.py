"""Leave ORM models: LeaveRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrdesk.common.constants import LeaveStatus, PayType
from hrdesk.core_hr.models import Employee
from hrdesk.database import Base


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_range"),
        sa.CheckConstraint("credits_deducted >= 0", name="ck_leave_credits_deducted"),
        sa.Index("ix_leave_requests_employee_range", "employee_id", "start_date", "end_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    # What the employee asked for (paid / unpaid / auto) ...
    requested_pay_type: Mapped[PayType] = mapped_column(
        sa.Enum(PayType, name="pay_type"), nullable=False, default=PayType.auto,
    )
    # ... and what eligibility + balance rules resolved it to (paid / unpaid).
    pay_type: Mapped[PayType] = mapped_column(
        sa.Enum(PayType, name="pay_type"), nullable=False, default=PayType.unpaid,
    )
    total_days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    credits_deducted: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 1), nullable=False, default=Decimal("0"),
    )
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status"),
        nullable=False,
        default=LeaveStatus.pending,
    )
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL")
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    rejection_comment: Mapped[Optional[str]] = mapped_column(sa.Text)
    attachment_ref: Mapped[Optional[str]] = mapped_column(sa.String(500))
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships (load explicitly with selectinload; async sessions cannot lazy-load)
    employee: Mapped[Employee] = relationship(lazy="raise")

    def __repr__(self) -> str:
        return (
            f"<LeaveRequest {self.employee_id} {self.start_date}→{self.end_date} "
            f"{self.status.value}>"
        )
