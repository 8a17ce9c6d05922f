"""Core HR ORM models: Employee.

SQLAlchemy 2.0 async-compatible models with Mapped[] annotations.
``leave_credits`` is the paid-leave ledger; only the leave approval
transition writes it, under a row lock.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrdesk.common.constants import EmployeeStatus
from hrdesk.database import Base


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class Employee(Base):
    """Employee master record."""

    __tablename__ = "employees"
    __table_args__ = (
        sa.CheckConstraint("leave_credits >= 0", name="ck_employee_credits_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_code: Mapped[str] = mapped_column(sa.String(20), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column(sa.String(100))
    email: Mapped[Optional[str]] = mapped_column(sa.String(255), unique=True)
    hire_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    leave_credits: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 1), nullable=False, default=Decimal("0"),
    )
    status: Mapped[EmployeeStatus] = mapped_column(
        sa.Enum(EmployeeStatus, name="employee_status"),
        nullable=False,
        default=EmployeeStatus.active,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def display_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def __repr__(self) -> str:
        return f"<Employee {self.employee_code} {self.display_name!r}>"
