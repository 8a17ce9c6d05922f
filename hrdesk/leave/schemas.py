"""Leave Pydantic v2 schemas: request / response validation.

Naming conventions:
  - *Create / *Update / *Request  → request bodies (write)
  - *Out                          → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hrdesk.common.constants import LeaveStatus, PayType
from hrdesk.common.pagination import PaginationMeta


def _normalize_pay_type(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _strip_or_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Create / Update
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for submitting a leave request.

    The range is inclusive on both ends. Inverted ranges are rejected by the
    service as ``invalid-range`` rather than here, so API and script callers
    see the same error.
    """

    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    reason: str = Field(..., min_length=1, max_length=1000, description="Reason for leave")
    pay_type: PayType = Field(
        default=PayType.auto,
        description="paid | unpaid | auto (paid when the balance covers the range)",
    )
    attachment_ref: Optional[str] = Field(None, max_length=500)

    @field_validator("pay_type", mode="before")
    @classmethod
    def normalize_pay_type(cls, v: Any) -> Any:
        return _normalize_pay_type(v)

    @field_validator("reason", mode="before")
    @classmethod
    def strip_reason(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("attachment_ref", mode="before")
    @classmethod
    def strip_attachment(cls, v: Any) -> Any:
        return _strip_or_none(v)


class LeaveRequestUpdate(BaseModel):
    """Partial edit of a pending request. Omitted fields keep their value."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: Optional[str] = Field(None, min_length=1, max_length=1000)
    pay_type: Optional[PayType] = None
    attachment_ref: Optional[str] = Field(None, max_length=500)

    @field_validator("pay_type", mode="before")
    @classmethod
    def normalize_pay_type(cls, v: Any) -> Any:
        return _normalize_pay_type(v)

    @field_validator("reason", "attachment_ref", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return _strip_or_none(v)


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Response
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    start_date: date
    end_date: date
    reason: Optional[str] = None
    requested_pay_type: PayType
    pay_type: PayType
    total_days: int
    credits_deducted: Decimal
    status: LeaveStatus
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    rejection_comment: Optional[str] = None
    attachment_ref: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    # Enriched by service
    employee_name: Optional[str] = None


class LeaveRequestListOut(BaseModel):
    data: list[LeaveRequestOut]
    meta: PaginationMeta


# ═════════════════════════════════════════════════════════════════════
# Approve / Reject
# ═════════════════════════════════════════════════════════════════════


class LeaveRejectRequest(BaseModel):
    """Payload for rejecting a leave request. A blank comment is refused."""

    comment: str = Field(..., max_length=1000)


# ═════════════════════════════════════════════════════════════════════
# Credits
# ═════════════════════════════════════════════════════════════════════


class CreditSummaryOut(BaseModel):
    """Paid-leave balance snapshot for one employee."""

    employee_id: uuid.UUID
    hire_date: date
    eligible_from: date
    is_eligible: bool
    leave_credits: Decimal
    pending_paid_days: Decimal = Decimal("0")
    available: Decimal = Decimal("0")
