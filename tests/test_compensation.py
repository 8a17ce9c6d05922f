"""Compensation resolver tests: eligibility anniversary and paid/unpaid selection."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from hrdesk.common.constants import PayType
from hrdesk.common.exceptions import InvalidRangeException
from hrdesk.leave.compensation import eligibility_date, resolve_compensation


def _employee(hire_date=date(2024, 1, 15), leave_credits=Decimal("5")):
    return SimpleNamespace(hire_date=hire_date, leave_credits=leave_credits)


class TestEligibility:

    def test_anniversary_date(self):
        assert eligibility_date(date(2024, 1, 15)) == date(2025, 1, 15)

    def test_leap_day_hire_clamps(self):
        assert eligibility_date(date(2024, 2, 29)) == date(2025, 2, 28)

    def test_day_before_anniversary_is_unpaid(self):
        result = resolve_compensation(
            _employee(), date(2025, 1, 14), date(2025, 1, 14), PayType.paid,
        )
        assert result.eligible is False
        assert result.pay_type == PayType.unpaid
        assert result.credits_deducted == Decimal("0")
        assert result.insufficient_credits is False

    def test_anniversary_itself_is_eligible(self):
        result = resolve_compensation(
            _employee(), date(2025, 1, 15), date(2025, 1, 15), PayType.paid,
        )
        assert result.eligible is True
        assert result.pay_type == PayType.paid
        assert result.credits_deducted == Decimal("1")

    def test_leap_day_hire_eligible_on_feb_28(self):
        emp = _employee(hire_date=date(2024, 2, 29))
        result = resolve_compensation(emp, date(2025, 2, 28), date(2025, 2, 28), PayType.auto)
        assert result.eligible is True
        assert result.pay_type == PayType.paid

    def test_custom_eligibility_months(self):
        result = resolve_compensation(
            _employee(), date(2024, 7, 15), date(2024, 7, 15), PayType.auto,
            eligibility_months=6,
        )
        assert result.eligible is True


class TestPayTypeSelection:
    """Employee has 5 credits and is past the anniversary."""

    def test_auto_covered_is_paid(self):
        result = resolve_compensation(
            _employee(), date(2026, 3, 2), date(2026, 3, 6), PayType.auto,
        )
        assert result.leave_days == 5
        assert result.pay_type == PayType.paid
        assert result.credits_deducted == Decimal("5")

    def test_auto_short_falls_back_to_unpaid(self):
        result = resolve_compensation(
            _employee(), date(2026, 3, 2), date(2026, 3, 7), PayType.auto,
        )
        assert result.leave_days == 6
        assert result.pay_type == PayType.unpaid
        assert result.credits_deducted == Decimal("0")
        assert result.insufficient_credits is False

    def test_explicit_paid_short_flags_insufficient(self):
        result = resolve_compensation(
            _employee(), date(2026, 3, 2), date(2026, 3, 7), PayType.paid,
        )
        assert result.pay_type == PayType.paid
        assert result.credits_deducted == Decimal("6")
        assert result.insufficient_credits is True

    def test_unpaid_always_honoured(self):
        result = resolve_compensation(
            _employee(leave_credits=Decimal("30")),
            date(2026, 3, 2), date(2026, 3, 6), PayType.unpaid,
        )
        assert result.pay_type == PayType.unpaid
        assert result.credits_deducted == Decimal("0")

    def test_missing_balance_treated_as_zero(self):
        result = resolve_compensation(
            _employee(leave_credits=None), date(2026, 3, 2), date(2026, 3, 2), PayType.auto,
        )
        assert result.pay_type == PayType.unpaid

    def test_string_pay_type_accepted(self):
        result = resolve_compensation(
            _employee(), date(2026, 3, 2), date(2026, 3, 2), "auto",
        )
        assert result.pay_type == PayType.paid

    def test_inverted_range_rejected(self):
        with pytest.raises(InvalidRangeException):
            resolve_compensation(
                _employee(), date(2026, 3, 6), date(2026, 3, 2), PayType.auto,
            )
