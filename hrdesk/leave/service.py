"""Leave service layer: submission, edits, approval workflow, credit ledger.

Business logic:
  - Overlap exclusion over pending/approved requests of one employee
  - Paid/unpaid resolution via ``hrdesk.leave.compensation``
  - Approve/reject/cancel transitions out of ``pending`` (terminal states are final)
  - Credit deduction on approval, re-checked against the current balance
  - Derived ``on_leave`` employee status, recomputed from approved requests

Every mutating operation locks the employee row first (``SELECT ... FOR
UPDATE``) and reads overlap/credit state under that lock, so two concurrent
submissions or approvals for the same employee serialize.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrdesk.common import clock
from hrdesk.common.audit import create_audit_entry
from hrdesk.common.calendar import days_between_inclusive
from hrdesk.common.constants import (
    ENTITY_LEAVE_REQUEST,
    EmployeeStatus,
    LeaveStatus,
    PayType,
)
from hrdesk.common.exceptions import (
    ForbiddenException,
    InsufficientCreditsException,
    InvalidTransitionException,
    NotFoundException,
    OverlapConflictException,
    ValidationException,
)
from hrdesk.common.pagination import PaginationParams, paginate
from hrdesk.core_hr.models import Employee
from hrdesk.leave.compensation import Compensation, eligibility_date, resolve_compensation
from hrdesk.leave.models import LeaveRequest
from hrdesk.leave.schemas import (
    CreditSummaryOut,
    LeaveRequestCreate,
    LeaveRequestListOut,
    LeaveRequestOut,
    LeaveRequestUpdate,
)
from hrdesk.notifications.service import (
    notify_leave_approved,
    notify_leave_rejected,
    notify_leave_submitted,
)

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (LeaveStatus.pending, LeaveStatus.approved)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: submit, edit, approve, reject, cancel, credits."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _lock_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Employee:
        """Load the employee row under ``FOR UPDATE`` with fresh attribute values."""
        result = await db.execute(
            select(Employee)
            .where(Employee.id == employee_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def _get_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        fresh: bool = False,
    ) -> LeaveRequest:
        query = select(LeaveRequest).where(LeaveRequest.id == request_id)
        if fresh:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(query)
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave_req

    @staticmethod
    async def _lock_for_transition(
        db: AsyncSession,
        request_id: uuid.UUID,
    ) -> tuple[LeaveRequest, Employee]:
        """Lock the owning employee, then re-read the request under that lock."""
        leave_req = await LeaveService._get_request(db, request_id)
        employee = await LeaveService._lock_employee(db, leave_req.employee_id)
        leave_req = await LeaveService._get_request(db, request_id, fresh=True)
        return leave_req, employee

    @staticmethod
    def _require_pending(leave_req: LeaveRequest, action: str) -> None:
        if leave_req.status != LeaveStatus.pending:
            raise InvalidTransitionException(
                "LeaveRequest",
                str(leave_req.id),
                f"cannot {action} a request that is already {leave_req.status.value}.",
            )

    @staticmethod
    async def _check_overlap(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start_date: date,
        end_date: date,
        *,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Raise if a pending/approved request of the employee shares a day with the range."""
        query = select(LeaveRequest.id).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.in_(ACTIVE_STATUSES),
            LeaveRequest.start_date <= end_date,
            LeaveRequest.end_date >= start_date,
        )
        if exclude_id is not None:
            query = query.where(LeaveRequest.id != exclude_id)

        conflicting_id = (await db.execute(query.limit(1))).scalar()
        if conflicting_id is not None:
            raise OverlapConflictException(
                str(employee_id), str(conflicting_id), start_date, end_date,
            )

    @staticmethod
    def _resolve(
        employee: Employee,
        start_date: date,
        end_date: date,
        requested_pay_type: PayType,
    ) -> Compensation:
        compensation = resolve_compensation(
            employee, start_date, end_date, requested_pay_type,
        )
        if compensation.insufficient_credits:
            raise InsufficientCreditsException(
                str(employee.id),
                employee.leave_credits,
                compensation.credits_deducted,
            )
        return compensation

    @staticmethod
    def _build_request_response(
        leave_req: LeaveRequest,
        employee: Optional[Employee] = None,
    ) -> LeaveRequestOut:
        out = LeaveRequestOut.model_validate(leave_req)
        if employee is not None:
            out.employee_name = employee.display_name
        return out

    @staticmethod
    def _snapshot(leave_req: LeaveRequest) -> dict:
        return {
            "start_date": leave_req.start_date.isoformat(),
            "end_date": leave_req.end_date.isoformat(),
            "pay_type": leave_req.pay_type.value,
            "total_days": leave_req.total_days,
            "credits_deducted": str(leave_req.credits_deducted),
            "status": leave_req.status.value,
        }

    # ─────────────────────────────────────────────────────────────────
    # Derived employee status
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def refresh_employee_status(
        db: AsyncSession,
        employee: Employee,
    ) -> EmployeeStatus:
        """Recompute ``on_leave`` / ``active`` from the approved requests covering today.

        Computed from scratch every time. Resigned and terminated employees
        keep their status.
        """
        if employee.status not in (EmployeeStatus.active, EmployeeStatus.on_leave):
            return employee.status

        today = clock.today()
        covering = await db.execute(
            select(func.count())
            .select_from(LeaveRequest)
            .where(
                LeaveRequest.employee_id == employee.id,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date <= today,
                LeaveRequest.end_date >= today,
            )
        )
        new_status = (
            EmployeeStatus.on_leave if covering.scalar_one() > 0 else EmployeeStatus.active
        )
        if employee.status != new_status:
            logger.info(
                "Employee %s status %s -> %s",
                employee.id, employee.status.value, new_status.value,
            )
            employee.status = new_status
            await db.flush()
        return new_status

    # ─────────────────────────────────────────────────────────────────
    # Submit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def submit_leave(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: LeaveRequestCreate,
    ) -> LeaveRequestOut:
        """Create a pending leave request.

        Raises InvalidRange before touching the store, then under the
        employee lock: NotFound, InvalidTransition (employee on leave),
        OverlapConflict, InsufficientCredits (explicit paid only).
        """
        days_between_inclusive(data.start_date, data.end_date)

        employee = await LeaveService._lock_employee(db, employee_id)
        await LeaveService.refresh_employee_status(db, employee)
        if employee.status == EmployeeStatus.on_leave:
            raise InvalidTransitionException(
                "Employee",
                str(employee_id),
                "cannot submit a leave request while currently on leave.",
            )

        await LeaveService._check_overlap(db, employee_id, data.start_date, data.end_date)
        compensation = LeaveService._resolve(
            employee, data.start_date, data.end_date, data.pay_type,
        )

        leave_req = LeaveRequest(
            employee_id=employee_id,
            start_date=data.start_date,
            end_date=data.end_date,
            reason=data.reason,
            requested_pay_type=data.pay_type,
            pay_type=compensation.pay_type,
            total_days=compensation.leave_days,
            credits_deducted=compensation.credits_deducted,
            status=LeaveStatus.pending,
            attachment_ref=data.attachment_ref,
        )
        db.add(leave_req)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type=ENTITY_LEAVE_REQUEST,
            entity_id=leave_req.id,
            new_values={
                **LeaveService._snapshot(leave_req),
                "requested_pay_type": data.pay_type.value,
            },
        )
        logger.info(
            "Leave request %s submitted for employee %s (%s, %d day(s))",
            leave_req.id, employee_id, leave_req.pay_type.value, leave_req.total_days,
        )

        out = LeaveService._build_request_response(leave_req, employee)
        await notify_leave_submitted(db, leave_req)
        return out

    # ─────────────────────────────────────────────────────────────────
    # Edit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def edit_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        data: LeaveRequestUpdate,
        requester_employee_id: Optional[uuid.UUID] = None,
    ) -> LeaveRequestOut:
        """Edit a pending request in place, re-running overlap and pay checks.

        When ``requester_employee_id`` is given only the owner may edit.
        """
        leave_req, employee = await LeaveService._lock_for_transition(db, request_id)

        if requester_employee_id is not None and leave_req.employee_id != requester_employee_id:
            raise ForbiddenException("You can only edit your own leave requests.")
        LeaveService._require_pending(leave_req, "edit")

        fields = data.model_dump(exclude_unset=True)
        start_date = fields.get("start_date") or leave_req.start_date
        end_date = fields.get("end_date") or leave_req.end_date
        pay_type = fields.get("pay_type") or leave_req.requested_pay_type

        days_between_inclusive(start_date, end_date)
        await LeaveService._check_overlap(
            db, leave_req.employee_id, start_date, end_date, exclude_id=leave_req.id,
        )
        compensation = LeaveService._resolve(employee, start_date, end_date, pay_type)

        old_values = LeaveService._snapshot(leave_req)
        leave_req.start_date = start_date
        leave_req.end_date = end_date
        leave_req.requested_pay_type = pay_type
        leave_req.pay_type = compensation.pay_type
        leave_req.total_days = compensation.leave_days
        leave_req.credits_deducted = compensation.credits_deducted
        if "reason" in fields and fields["reason"]:
            leave_req.reason = fields["reason"]
        if "attachment_ref" in fields:
            leave_req.attachment_ref = fields["attachment_ref"]
        leave_req.updated_at = clock.utcnow()
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type=ENTITY_LEAVE_REQUEST,
            entity_id=leave_req.id,
            old_values=old_values,
            new_values=LeaveService._snapshot(leave_req),
        )
        return LeaveService._build_request_response(leave_req, employee)

    # ─────────────────────────────────────────────────────────────────
    # Approve
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        approver_id: uuid.UUID,
    ) -> LeaveRequestOut:
        """Approve a pending request and apply its credit deduction.

        A paid request whose deduction no longer fits the current balance
        is downgraded to unpaid instead of failing. A second approve raises
        InvalidTransition, so credits are never deducted twice.
        """
        leave_req, employee = await LeaveService._lock_for_transition(db, request_id)
        LeaveService._require_pending(leave_req, "approve")

        old_values = LeaveService._snapshot(leave_req)
        now = clock.utcnow()

        if leave_req.pay_type == PayType.paid and employee.leave_credits < leave_req.credits_deducted:
            logger.warning(
                "Leave request %s downgraded to unpaid: %s credit(s) left, %s needed",
                leave_req.id, employee.leave_credits, leave_req.credits_deducted,
            )
            leave_req.pay_type = PayType.unpaid
            leave_req.credits_deducted = Decimal("0")

        leave_req.status = LeaveStatus.approved
        leave_req.reviewed_by = approver_id
        leave_req.reviewed_at = now
        leave_req.updated_at = now

        if leave_req.pay_type == PayType.paid and leave_req.credits_deducted > 0:
            employee.leave_credits = max(
                Decimal("0"), employee.leave_credits - leave_req.credits_deducted,
            )

        await db.flush()
        await LeaveService.refresh_employee_status(db, employee)

        await create_audit_entry(
            db,
            action="approve",
            entity_type=ENTITY_LEAVE_REQUEST,
            entity_id=leave_req.id,
            actor_id=approver_id,
            old_values=old_values,
            new_values={
                **LeaveService._snapshot(leave_req),
                "leave_credits": str(employee.leave_credits),
            },
        )

        out = LeaveService._build_request_response(leave_req, employee)
        await notify_leave_approved(db, leave_req)
        return out

    # ─────────────────────────────────────────────────────────────────
    # Reject
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def reject_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        approver_id: uuid.UUID,
        comment: str,
    ) -> LeaveRequestOut:
        """Reject a pending request with a mandatory comment. No ledger effect."""
        comment = (comment or "").strip()
        if not comment:
            raise ValidationException({"comment": ["A rejection comment is required."]})

        leave_req, employee = await LeaveService._lock_for_transition(db, request_id)
        LeaveService._require_pending(leave_req, "reject")

        old_values = LeaveService._snapshot(leave_req)
        now = clock.utcnow()
        leave_req.status = LeaveStatus.rejected
        leave_req.reviewed_by = approver_id
        leave_req.reviewed_at = now
        leave_req.rejection_comment = comment
        leave_req.updated_at = now

        await db.flush()
        await LeaveService.refresh_employee_status(db, employee)

        await create_audit_entry(
            db,
            action="reject",
            entity_type=ENTITY_LEAVE_REQUEST,
            entity_id=leave_req.id,
            actor_id=approver_id,
            old_values=old_values,
            new_values={"status": LeaveStatus.rejected.value, "comment": comment},
        )

        out = LeaveService._build_request_response(leave_req, employee)
        await notify_leave_rejected(db, leave_req)
        return out

    # ─────────────────────────────────────────────────────────────────
    # Cancel
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        requester_employee_id: uuid.UUID,
    ) -> LeaveRequestOut:
        """Void the requester's own pending request. No ledger effect."""
        leave_req, employee = await LeaveService._lock_for_transition(db, request_id)

        if leave_req.employee_id != requester_employee_id:
            raise ForbiddenException("You can only cancel your own leave requests.")
        LeaveService._require_pending(leave_req, "cancel")

        now = clock.utcnow()
        leave_req.status = LeaveStatus.cancelled
        leave_req.cancelled_at = now
        leave_req.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="cancel",
            entity_type=ENTITY_LEAVE_REQUEST,
            entity_id=leave_req.id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.cancelled.value},
        )
        return LeaveService._build_request_response(leave_req, employee)

    # ─────────────────────────────────────────────────────────────────
    # Read side
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave_request(
        db: AsyncSession,
        request_id: uuid.UUID,
    ) -> LeaveRequestOut:
        leave_req = await LeaveService._get_request(db, request_id)
        employee = await db.get(Employee, leave_req.employee_id)
        return LeaveService._build_request_response(leave_req, employee)

    @staticmethod
    async def list_leave_requests(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[LeaveStatus] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> LeaveRequestListOut:
        """List leave requests, newest first. The date window keeps any request touching it."""
        query = select(LeaveRequest).order_by(LeaveRequest.created_at.desc())

        if employee_id:
            query = query.where(LeaveRequest.employee_id == employee_id)
        if status:
            query = query.where(LeaveRequest.status == status)
        if from_date:
            query = query.where(LeaveRequest.end_date >= from_date)
        if to_date:
            query = query.where(LeaveRequest.start_date <= to_date)

        rows, meta = await paginate(db, query, pagination, model=LeaveRequest)

        employee_ids = {r.employee_id for r in rows}
        names: dict[uuid.UUID, str] = {}
        if employee_ids:
            emp_result = await db.execute(
                select(Employee).where(Employee.id.in_(list(employee_ids)))
            )
            names = {e.id: e.display_name for e in emp_result.scalars().all()}

        data = []
        for leave_req in rows:
            out = LeaveService._build_request_response(leave_req)
            out.employee_name = names.get(leave_req.employee_id)
            data.append(out)
        return LeaveRequestListOut(data=data, meta=meta)

    @staticmethod
    async def get_credit_summary(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> CreditSummaryOut:
        """Balance, eligibility date and paid days still awaiting approval."""
        employee = await db.get(Employee, employee_id)
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))

        pending_result = await db.execute(
            select(func.coalesce(func.sum(LeaveRequest.credits_deducted), 0)).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status == LeaveStatus.pending,
                LeaveRequest.pay_type == PayType.paid,
            )
        )
        pending = Decimal(str(pending_result.scalar_one()))
        eligible_from = eligibility_date(employee.hire_date)

        return CreditSummaryOut(
            employee_id=employee.id,
            hire_date=employee.hire_date,
            eligible_from=eligible_from,
            is_eligible=clock.today() >= eligible_from,
            leave_credits=employee.leave_credits,
            pending_paid_days=pending,
            available=max(Decimal("0"), employee.leave_credits - pending),
        )
