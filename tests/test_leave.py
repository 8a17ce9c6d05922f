"""Leave module test suite: submission, overlap exclusion, pay resolution,
approval/rejection/cancellation, credit ledger, derived employee status,
and best-effort notifications.

Tests run against SQLite via the shared conftest.py fixtures.
"""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrdesk.common.audit import AuditTrail
from hrdesk.common.constants import (
    EmployeeStatus,
    LeaveStatus,
    PayType,
    UserRole,
)
from hrdesk.common.exceptions import (
    ForbiddenException,
    InsufficientCreditsException,
    InvalidRangeException,
    InvalidTransitionException,
    NotFoundException,
    OverlapConflictException,
    ValidationException,
)
from hrdesk.common.pagination import PaginationParams
from hrdesk.core_hr.models import Employee
from hrdesk.leave.models import LeaveRequest
from hrdesk.leave.schemas import LeaveRequestCreate, LeaveRequestUpdate
from hrdesk.leave.service import LeaveService
from hrdesk.notifications.models import Notification
from hrdesk.notifications.service import NotificationService
from tests.conftest import seed_employee, seed_user


# ═════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════


def _payload(
    start: date = date(2026, 3, 2),
    end: date = date(2026, 3, 6),
    pay_type: PayType = PayType.auto,
    reason: str = "Family trip",
) -> LeaveRequestCreate:
    return LeaveRequestCreate(
        start_date=start, end_date=end, reason=reason, pay_type=pay_type,
    )


async def _reload_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
    result = await db.execute(
        select(Employee)
        .where(Employee.id == employee_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().one()


def _page() -> PaginationParams:
    return PaginationParams(page=1, page_size=20, sort=None)


# ═════════════════════════════════════════════════════════════════════
# 1. Submission
# ═════════════════════════════════════════════════════════════════════


class TestSubmitLeave:

    async def test_submit_happy_path(self, db: AsyncSession):
        emp = await seed_employee(db, leave_credits=Decimal("10"))

        out = await LeaveService.submit_leave(db, emp.id, _payload())

        assert out.status == LeaveStatus.pending
        assert out.total_days == 5
        assert out.pay_type == PayType.paid
        assert out.requested_pay_type == PayType.auto
        assert out.credits_deducted == Decimal("5")
        assert out.employee_name == "Test User"

        # Nothing deducted until approval
        emp = await _reload_employee(db, emp.id)
        assert emp.leave_credits == Decimal("10")

    async def test_submit_auto_falls_back_to_unpaid(self, db: AsyncSession):
        emp = await seed_employee(db, leave_credits=Decimal("5"))

        out = await LeaveService.submit_leave(
            db, emp.id, _payload(end=date(2026, 3, 7)),
        )
        assert out.total_days == 6
        assert out.pay_type == PayType.unpaid
        assert out.credits_deducted == Decimal("0")

    async def test_submit_explicit_paid_insufficient_rejected(self, db: AsyncSession):
        emp = await seed_employee(db, leave_credits=Decimal("5"))

        with pytest.raises(InsufficientCreditsException) as exc_info:
            await LeaveService.submit_leave(
                db, emp.id, _payload(end=date(2026, 3, 7), pay_type=PayType.paid),
            )
        assert exc_info.value.requested == Decimal("6")

        count = (await db.execute(select(LeaveRequest))).scalars().all()
        assert count == []

    async def test_submit_before_anniversary_is_unpaid(self, db: AsyncSession):
        emp = await seed_employee(db, hire_date=date(2025, 6, 1), leave_credits=Decimal("10"))

        out = await LeaveService.submit_leave(
            db, emp.id, _payload(pay_type=PayType.paid),
        )
        assert out.pay_type == PayType.unpaid
        assert out.credits_deducted == Decimal("0")

    async def test_submit_inverted_range_rejected(self, db: AsyncSession):
        emp = await seed_employee(db)

        with pytest.raises(InvalidRangeException):
            await LeaveService.submit_leave(
                db, emp.id, _payload(start=date(2026, 3, 6), end=date(2026, 3, 2)),
            )

    async def test_submit_unknown_employee(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await LeaveService.submit_leave(db, uuid.uuid4(), _payload())

    async def test_submit_while_on_leave_rejected(self, db: AsyncSession):
        emp = await seed_employee(db)
        hr = await seed_user(db, role=UserRole.hr)
        out = await LeaveService.submit_leave(db, emp.id, _payload())

        with patch("hrdesk.common.clock.today", return_value=date(2026, 3, 4)):
            await LeaveService.approve_leave(db, out.id, hr.id)
            with pytest.raises(InvalidTransitionException):
                await LeaveService.submit_leave(
                    db, emp.id, _payload(start=date(2026, 3, 20), end=date(2026, 3, 21)),
                )

    async def test_submit_after_leave_ended_allowed(self, db: AsyncSession):
        emp = await seed_employee(db, leave_credits=Decimal("10"))
        hr = await seed_user(db, role=UserRole.hr)
        out = await LeaveService.submit_leave(db, emp.id, _payload())
        with patch("hrdesk.common.clock.today", return_value=date(2026, 3, 4)):
            await LeaveService.approve_leave(db, out.id, hr.id)

        with patch("hrdesk.common.clock.today", return_value=date(2026, 3, 20)):
            second = await LeaveService.submit_leave(
                db, emp.id, _payload(start=date(2026, 4, 6), end=date(2026, 4, 7)),
            )

        assert second.status == LeaveStatus.pending
        emp = await _reload_employee(db, emp.id)
        assert emp.status == EmployeeStatus.active

    async def test_submit_writes_audit_row(self, db: AsyncSession):
        emp = await seed_employee(db)
        out = await LeaveService.submit_leave(db, emp.id, _payload())

        rows = (
            await db.execute(select(AuditTrail).where(AuditTrail.entity_id == out.id))
        ).scalars().all()
        assert [r.action for r in rows] == ["create"]
        assert rows[0].new_values["requested_pay_type"] == "auto"


# ═════════════════════════════════════════════════════════════════════
# 2. Overlap exclusion
# ═════════════════════════════════════════════════════════════════════


class TestOverlap:

    async def test_overlapping_request_rejected(self, db: AsyncSession):
        emp = await seed_employee(db)
        await LeaveService.submit_leave(db, emp.id, _payload())

        with pytest.raises(OverlapConflictException):
            await LeaveService.submit_leave(
                db, emp.id, _payload(start=date(2026, 3, 6), end=date(2026, 3, 9)),
            )

    async def test_approved_request_blocks_overlap(self, db: AsyncSession):
        emp = await seed_employee(db)
        hr = await seed_user(db, role=UserRole.hr)
        first = await LeaveService.submit_leave(
            db, emp.id, _payload(start=date(2026, 1, 5), end=date(2026, 1, 10)),
        )
        await LeaveService.approve_leave(db, first.id, hr.id)

        with pytest.raises(OverlapConflictException):
            await LeaveService.submit_leave(
                db, emp.id, _payload(start=date(2026, 1, 8), end=date(2026, 1, 12)),
            )

    async def test_adjacent_ranges_allowed(self, db: AsyncSession):
        emp = await seed_employee(db, leave_credits=Decimal("20"))
        await LeaveService.submit_leave(db, emp.id, _payload())

        out = await LeaveService.submit_leave(
            db, emp.id, _payload(start=date(2026, 3, 7), end=date(2026, 3, 8)),
        )
        assert out.status == LeaveStatus.pending

    async def test_other_employees_do_not_conflict(self, db: AsyncSession):
        emp_a = await seed_employee(db, first_name="Ana")
        emp_b = await seed_employee(db, first_name="Ben")
        await LeaveService.submit_leave(db, emp_a.id, _payload())

        out = await LeaveService.submit_leave(db, emp_b.id, _payload())
        assert out.employee_id == emp_b.id

    async def test_rejected_request_frees_its_days(self, db: AsyncSession):
        emp = await seed_employee(db)
        hr = await seed_user(db, role=UserRole.hr)
        first = await LeaveService.submit_leave(db, emp.id, _payload())
        await LeaveService.reject_leave(db, first.id, hr.id, "Busy week")

        out = await LeaveService.submit_leave(db, emp.id, _payload())
        assert out.id != first.id


# ═════════════════════════════════════════════════════════════════════
# 3. Edit
# ═════════════════════════════════════════════════════════════════════


class TestEditLeave:

    async def test_edit_excludes_itself_from_overlap(self, db: AsyncSession):
        emp = await seed_employee(db)
        out = await LeaveService.submit_leave(db, emp.id, _payload())

        edited = await LeaveService.edit_leave(
            db, out.id,
            LeaveRequestUpdate(start_date=date(2026, 3, 3), end_date=date(2026, 3, 4)),
            requester_employee_id=emp.id,
        )
        assert edited.total_days == 2
        assert edited.credits_deducted == Decimal("2")
        assert edited.reason == "Family trip"

    async def test_edit_into_another_request_rejected(self, db: AsyncSession):
        emp = await seed_employee(db, leave_credits=Decimal("20"))
        await LeaveService.submit_leave(db, emp.id, _payload())
        second = await LeaveService.submit_leave(
            db, emp.id, _payload(start=date(2026, 3, 10), end=date(2026, 3, 11)),
        )

        with pytest.raises(OverlapConflictException):
            await LeaveService.edit_leave(
                db, second.id, LeaveRequestUpdate(start_date=date(2026, 3, 6)),
            )

    async def test_edit_by_other_employee_forbidden(self, db: AsyncSession):
        emp = await seed_employee(db)
        out = await LeaveService.submit_leave(db, emp.id, _payload())

        with pytest.raises(ForbiddenException):
            await LeaveService.edit_leave(
                db, out.id, LeaveRequestUpdate(reason="Changed"),
                requester_employee_id=uuid.uuid4(),
            )


# ═════════════════════════════════════════════════════════════════════
# 4. Approval workflow + credit ledger
# ═════════════════════════════════════════════════════════════════════


class TestApprovalWorkflow:

    async def test_approve_deducts_credits(self, db: AsyncSession):
        emp = await seed_employee(db, leave_credits=Decimal("10"))
        hr = await seed_user(db, role=UserRole.hr)
        out = await LeaveService.submit_leave(db, emp.id, _payload())

        approved = await LeaveService.approve_leave(db, out.id, hr.id)

        assert approved.status == LeaveStatus.approved
        assert approved.reviewed_by == hr.id
        assert approved.reviewed_at is not None
        emp = await _reload_employee(db, emp.id)
        assert emp.leave_credits == Decimal("5")

    async def test_approve_unpaid_leaves_balance(self, db: AsyncSession):
        emp = await seed_employee(db, leave_credits=Decimal("10"))
        hr = await seed_user(db, role=UserRole.hr)
        out = await LeaveService.submit_leave(db, emp.id, _payload(pay_type=PayType.unpaid))

        await LeaveService.approve_leave(db, out.id, hr.id)

        emp = await _reload_employee(db, emp.id)
        assert emp.leave_credits == Decimal("10")

    async def test_second_approve_rejected_without_double_deduction(self, db: AsyncSession):
        emp = await seed_employee(db, leave_credits=Decimal("10"))
        hr = await seed_user(db, role=UserRole.hr)
        out = await LeaveService.submit_leave(db, emp.id, _payload())
        await LeaveService.approve_leave(db, out.id, hr.id)

        with pytest.raises(InvalidTransitionException):
            await LeaveService.approve_leave(db, out.id, hr.id)

        emp = await _reload_employee(db, emp.id)
        assert emp.leave_credits == Decimal("5")

    async def test_approve_downgrades_when_balance_drifted(self, db: AsyncSession):
        """Two paid requests each fit 5 credits on their own; the second is paid out unpaid."""
        emp = await seed_employee(db, leave_credits=Decimal("5"))
        hr = await seed_user(db, role=UserRole.hr)
        first = await LeaveService.submit_leave(
            db, emp.id, _payload(start=date(2026, 3, 2), end=date(2026, 3, 5)),
        )
        second = await LeaveService.submit_leave(
            db, emp.id, _payload(start=date(2026, 3, 16), end=date(2026, 3, 19)),
        )
        assert first.pay_type == second.pay_type == PayType.paid

        await LeaveService.approve_leave(db, first.id, hr.id)
        downgraded = await LeaveService.approve_leave(db, second.id, hr.id)

        assert downgraded.status == LeaveStatus.approved
        assert downgraded.pay_type == PayType.unpaid
        assert downgraded.credits_deducted == Decimal("0")
        emp = await _reload_employee(db, emp.id)
        assert emp.leave_credits == Decimal("1")

    async def test_reject_requires_comment(self, db: AsyncSession):
        emp = await seed_employee(db)
        hr = await seed_user(db, role=UserRole.hr)
        out = await LeaveService.submit_leave(db, emp.id, _payload())

        with pytest.raises(ValidationException):
            await LeaveService.reject_leave(db, out.id, hr.id, "   ")

    async def test_reject_keeps_balance(self, db: AsyncSession):
        emp = await seed_employee(db, leave_credits=Decimal("10"))
        hr = await seed_user(db, role=UserRole.hr)
        out = await LeaveService.submit_leave(db, emp.id, _payload())

        rejected = await LeaveService.reject_leave(db, out.id, hr.id, "  Project deadline ")

        assert rejected.status == LeaveStatus.rejected
        assert rejected.rejection_comment == "Project deadline"
        emp = await _reload_employee(db, emp.id)
        assert emp.leave_credits == Decimal("10")

    async def test_reject_after_approve_rejected(self, db: AsyncSession):
        emp = await seed_employee(db)
        hr = await seed_user(db, role=UserRole.hr)
        out = await LeaveService.submit_leave(db, emp.id, _payload())
        await LeaveService.approve_leave(db, out.id, hr.id)

        with pytest.raises(InvalidTransitionException):
            await LeaveService.reject_leave(db, out.id, hr.id, "Too late")

    async def test_approve_unknown_request(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await LeaveService.approve_leave(db, uuid.uuid4(), uuid.uuid4())

    async def test_transitions_are_audited(self, db: AsyncSession):
        emp = await seed_employee(db)
        hr = await seed_user(db, role=UserRole.hr)
        out = await LeaveService.submit_leave(db, emp.id, _payload())
        await LeaveService.approve_leave(db, out.id, hr.id)

        rows = (
            await db.execute(
                select(AuditTrail)
                .where(AuditTrail.entity_id == out.id)
                .order_by(AuditTrail.created_at)
            )
        ).scalars().all()
        assert [r.action for r in rows] == ["create", "approve"]
        assert rows[1].actor_id == hr.id
        assert rows[1].old_values["status"] == "pending"


# ═════════════════════════════════════════════════════════════════════
# 5. Cancellation
# ═════════════════════════════════════════════════════════════════════


class TestCancelLeave:

    async def test_cancel_own_pending(self, db: AsyncSession):
        emp = await seed_employee(db)
        out = await LeaveService.submit_leave(db, emp.id, _payload())

        cancelled = await LeaveService.cancel_leave(db, out.id, emp.id)

        assert cancelled.status == LeaveStatus.cancelled
        assert cancelled.cancelled_at is not None

    async def test_cancel_approved_rejected(self, db: AsyncSession):
        emp = await seed_employee(db, leave_credits=Decimal("10"))
        hr = await seed_user(db, role=UserRole.hr)
        out = await LeaveService.submit_leave(db, emp.id, _payload())
        await LeaveService.approve_leave(db, out.id, hr.id)

        with pytest.raises(InvalidTransitionException):
            await LeaveService.cancel_leave(db, out.id, emp.id)

        emp = await _reload_employee(db, emp.id)
        assert emp.leave_credits == Decimal("5")

    async def test_cancel_others_leave_forbidden(self, db: AsyncSession):
        owner = await seed_employee(db, first_name="Owner")
        other = await seed_employee(db, first_name="Other")
        out = await LeaveService.submit_leave(db, owner.id, _payload())

        with pytest.raises(ForbiddenException):
            await LeaveService.cancel_leave(db, out.id, other.id)


# ═════════════════════════════════════════════════════════════════════
# 6. Derived employee status
# ═════════════════════════════════════════════════════════════════════


class TestEmployeeStatus:

    async def test_on_leave_while_approved_leave_covers_today(self, db: AsyncSession):
        emp = await seed_employee(db)
        hr = await seed_user(db, role=UserRole.hr)
        out = await LeaveService.submit_leave(db, emp.id, _payload())

        with patch("hrdesk.common.clock.today", return_value=date(2026, 3, 4)):
            await LeaveService.approve_leave(db, out.id, hr.id)

        emp = await _reload_employee(db, emp.id)
        assert emp.status == EmployeeStatus.on_leave

    async def test_future_leave_keeps_active(self, db: AsyncSession):
        emp = await seed_employee(db)
        hr = await seed_user(db, role=UserRole.hr)
        out = await LeaveService.submit_leave(db, emp.id, _payload())

        with patch("hrdesk.common.clock.today", return_value=date(2026, 2, 20)):
            await LeaveService.approve_leave(db, out.id, hr.id)

        emp = await _reload_employee(db, emp.id)
        assert emp.status == EmployeeStatus.active

    async def test_status_returns_to_active_after_leave_ends(self, db: AsyncSession):
        emp = await seed_employee(db)
        hr = await seed_user(db, role=UserRole.hr)
        out = await LeaveService.submit_leave(db, emp.id, _payload())
        with patch("hrdesk.common.clock.today", return_value=date(2026, 3, 4)):
            await LeaveService.approve_leave(db, out.id, hr.id)

        with patch("hrdesk.common.clock.today", return_value=date(2026, 3, 9)):
            status = await LeaveService.refresh_employee_status(db, emp)

        assert status == EmployeeStatus.active

    async def test_resigned_employee_untouched(self, db: AsyncSession):
        emp = await seed_employee(db, status=EmployeeStatus.resigned)

        status = await LeaveService.refresh_employee_status(db, emp)
        assert status == EmployeeStatus.resigned


# ═════════════════════════════════════════════════════════════════════
# 7. Notifications are best-effort
# ═════════════════════════════════════════════════════════════════════


class TestLeaveNotifications:

    async def test_submit_notifies_approvers(self, db: AsyncSession):
        emp = await seed_employee(db)
        hr = await seed_user(db, role=UserRole.hr)
        admin = await seed_user(db, role=UserRole.admin)
        await seed_user(db, role=UserRole.employee, employee_id=emp.id)

        await LeaveService.submit_leave(db, emp.id, _payload())

        rows = (await db.execute(select(Notification))).scalars().all()
        assert {n.recipient_id for n in rows} == {hr.id, admin.id}
        assert all(n.title == "New Leave Request" for n in rows)

    async def test_approve_notifies_employee_accounts(self, db: AsyncSession):
        emp = await seed_employee(db)
        hr = await seed_user(db, role=UserRole.hr)
        login = await seed_user(db, role=UserRole.employee, employee_id=emp.id)
        out = await LeaveService.submit_leave(db, emp.id, _payload())

        await LeaveService.approve_leave(db, out.id, hr.id)

        rows = (
            await db.execute(
                select(Notification).where(Notification.recipient_id == login.id)
            )
        ).scalars().all()
        assert [n.title for n in rows] == ["Leave Request Approved"]

    async def test_dispatch_failure_keeps_transition(self, db: AsyncSession):
        emp = await seed_employee(db, leave_credits=Decimal("10"))
        hr = await seed_user(db, role=UserRole.hr)

        with patch.object(
            NotificationService,
            "resolve_recipients",
            AsyncMock(side_effect=RuntimeError("mail relay down")),
        ):
            out = await LeaveService.submit_leave(db, emp.id, _payload())
            approved = await LeaveService.approve_leave(db, out.id, hr.id)

        assert approved.status == LeaveStatus.approved
        stored = (
            await db.execute(select(LeaveRequest).where(LeaveRequest.id == out.id))
        ).scalars().one()
        assert stored.status == LeaveStatus.approved
        emp = await _reload_employee(db, emp.id)
        assert emp.leave_credits == Decimal("5")
        assert (await db.execute(select(Notification))).scalars().all() == []


# ═════════════════════════════════════════════════════════════════════
# 8. Read side
# ═════════════════════════════════════════════════════════════════════


class TestLeaveQueries:

    async def test_list_filters_by_status_and_window(self, db: AsyncSession):
        emp = await seed_employee(db, leave_credits=Decimal("30"))
        hr = await seed_user(db, role=UserRole.hr)
        march = await LeaveService.submit_leave(db, emp.id, _payload())
        april = await LeaveService.submit_leave(
            db, emp.id, _payload(start=date(2026, 4, 6), end=date(2026, 4, 7)),
        )
        await LeaveService.approve_leave(db, april.id, hr.id)

        pending = await LeaveService.list_leave_requests(
            db, _page(), status=LeaveStatus.pending,
        )
        assert [r.id for r in pending.data] == [march.id]

        in_april = await LeaveService.list_leave_requests(
            db, _page(), from_date=date(2026, 4, 1), to_date=date(2026, 4, 30),
        )
        assert [r.id for r in in_april.data] == [april.id]
        assert in_april.meta.total == 1
        assert in_april.data[0].employee_name == "Test User"

    async def test_credit_summary(self, db: AsyncSession):
        emp = await seed_employee(db, leave_credits=Decimal("10"))
        await LeaveService.submit_leave(db, emp.id, _payload())

        with patch("hrdesk.common.clock.today", return_value=date(2026, 2, 1)):
            summary = await LeaveService.get_credit_summary(db, emp.id)

        assert summary.eligible_from == date(2025, 1, 15)
        assert summary.is_eligible is True
        assert summary.leave_credits == Decimal("10")
        assert summary.pending_paid_days == Decimal("5")
        assert summary.available == Decimal("5")

    async def test_get_unknown_request(self, db: AsyncSession):
        with pytest.raises(NotFoundException):
            await LeaveService.get_leave_request(db, uuid.uuid4())
