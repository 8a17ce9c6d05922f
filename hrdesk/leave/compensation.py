"""Leave eligibility and compensation resolver.

Decides whether a leave request is paid or unpaid and how many credits it
would consume. Pure: reads only the employee's hire date and balance, never
the database.

Rules:
  - Paid leave becomes available on the hire anniversary
    (``add_months(hire_date, 12)``), not after 365 days.
  - ``unpaid`` is always honoured.
  - ``paid`` reports the would-be deduction and flags an insufficient
    balance; the caller rejects it.
  - ``auto`` picks paid when the balance covers the whole range and falls
    back to unpaid otherwise. It never reports insufficient credits.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from hrdesk.common.calendar import DateLike, add_months, days_between_inclusive, to_date
from hrdesk.common.constants import PayType
from hrdesk.config import settings


@dataclass(frozen=True)
class Compensation:
    """Resolved pay classification for one leave range."""

    leave_days: int
    pay_type: PayType
    credits_deducted: Decimal
    eligible: bool
    insufficient_credits: bool = False


def eligibility_date(hire_date: date, months: Optional[int] = None) -> date:
    """First day on which paid leave may start."""
    if months is None:
        months = settings.LEAVE_ELIGIBILITY_MONTHS
    return add_months(hire_date, months)


def resolve_compensation(
    employee: Any,
    start_date: DateLike,
    end_date: DateLike,
    requested_pay_type: PayType,
    *,
    eligibility_months: Optional[int] = None,
) -> Compensation:
    """Resolve pay type and credit deduction for ``[start_date, end_date]``.

    ``employee`` needs ``hire_date`` and ``leave_credits`` attributes.

    Raises:
        InvalidRangeException: a date fails to parse or the range is inverted.
    """
    leave_days = days_between_inclusive(start_date, end_date)
    start = to_date(start_date)
    requested = PayType(requested_pay_type)
    balance = Decimal(str(employee.leave_credits or 0))
    days = Decimal(leave_days)

    eligible = start >= eligibility_date(employee.hire_date, eligibility_months)
    unpaid = Compensation(
        leave_days=leave_days,
        pay_type=PayType.unpaid,
        credits_deducted=Decimal("0"),
        eligible=eligible,
    )

    if not eligible or requested == PayType.unpaid:
        return unpaid

    if requested == PayType.paid:
        return Compensation(
            leave_days=leave_days,
            pay_type=PayType.paid,
            credits_deducted=days,
            eligible=True,
            insufficient_credits=balance < days,
        )

    # auto
    if balance >= days:
        return Compensation(
            leave_days=leave_days,
            pay_type=PayType.paid,
            credits_deducted=days,
            eligible=True,
        )
    return unpaid
