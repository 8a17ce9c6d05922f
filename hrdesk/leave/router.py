"""Leave router: submit, edit, approve/reject, cancel, list, credits.

All endpoints require authentication. Approve/reject require an approver role.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrdesk.auth.dependencies import (
    get_current_user,
    is_approver,
    require_employee,
    require_approver,
)
from hrdesk.auth.models import User
from hrdesk.common.constants import LeaveStatus
from hrdesk.common.exceptions import ForbiddenException
from hrdesk.common.pagination import PaginationParams
from hrdesk.database import get_db
from hrdesk.leave.schemas import (
    CreditSummaryOut,
    LeaveRejectRequest,
    LeaveRequestCreate,
    LeaveRequestListOut,
    LeaveRequestOut,
    LeaveRequestUpdate,
)
from hrdesk.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
async def submit_leave(
    body: LeaveRequestCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit a leave request for the caller's linked employee."""
    employee_id = require_employee(user)
    return await LeaveService.submit_leave(db, employee_id, body)


# ── GET /requests ───────────────────────────────────────────────────

@router.get("/requests", response_model=LeaveRequestListOut)
async def list_leave_requests(
    employee_id: Optional[uuid.UUID] = Query(None),
    status: Optional[LeaveStatus] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Approvers see every request; everyone else sees their own."""
    if not is_approver(user):
        employee_id = require_employee(user)
    return await LeaveService.list_leave_requests(
        db,
        pagination,
        employee_id=employee_id,
        status=status,
        from_date=from_date,
        to_date=to_date,
    )


# ── GET /credits/me ─────────────────────────────────────────────────

@router.get("/credits/me", response_model=CreditSummaryOut)
async def my_credits(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_credit_summary(db, require_employee(user))


# ── GET /credits/{employee_id} ──────────────────────────────────────

@router.get("/credits/{employee_id}", response_model=CreditSummaryOut)
async def employee_credits(
    employee_id: uuid.UUID,
    user: User = Depends(require_approver()),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_credit_summary(db, employee_id)


# ── GET /requests/{id} ──────────────────────────────────────────────

@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_leave_request(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    out = await LeaveService.get_leave_request(db, request_id)
    if not is_approver(user) and out.employee_id != user.employee_id:
        raise ForbiddenException("You can only view your own leave requests.")
    return out


# ── PATCH /requests/{id} ────────────────────────────────────────────

@router.patch("/requests/{request_id}", response_model=LeaveRequestOut)
async def edit_leave_request(
    request_id: uuid.UUID,
    body: LeaveRequestUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Edit a pending request. Approvers may edit any; employees only their own."""
    requester = None if is_approver(user) else require_employee(user)
    return await LeaveService.edit_leave(
        db, request_id, body, requester_employee_id=requester,
    )


# ── PUT /requests/{id}/approve ──────────────────────────────────────

@router.put("/requests/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    request_id: uuid.UUID,
    user: User = Depends(require_approver()),
    db: AsyncSession = Depends(get_db),
):
    """Approve a pending leave request. Deducts credits for paid leave."""
    return await LeaveService.approve_leave(db, request_id, user.id)


# ── PUT /requests/{id}/reject ───────────────────────────────────────

@router.put("/requests/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    request_id: uuid.UUID,
    body: LeaveRejectRequest,
    user: User = Depends(require_approver()),
    db: AsyncSession = Depends(get_db),
):
    """Reject a pending leave request with a comment."""
    return await LeaveService.reject_leave(db, request_id, user.id, body.comment)


# ── PUT /requests/{id}/cancel ───────────────────────────────────────

@router.put("/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave(
    request_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel the caller's own pending request."""
    return await LeaveService.cancel_leave(db, request_id, require_employee(user))
