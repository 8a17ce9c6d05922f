"""Automation Pydantic v2 schemas: rules and generated tasks."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hrdesk.common.constants import (
    WEEKDAY_ORDER,
    ScheduleType,
    TaskPriority,
    TaskStatus,
    Weekday,
)
from hrdesk.common.pagination import PaginationMeta


def _lower(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _normalize_days(value: Any) -> Any:
    """Trim/lower-case day codes, drop duplicates, keep Monday-first order."""
    if value is None:
        return value
    if isinstance(value, str):
        value = [part for part in value.split(",") if part.strip()]
    seen: list[Weekday] = []
    for day in value:
        code = Weekday(_lower(getattr(day, "value", day)))
        if code not in seen:
            seen.append(code)
    return sorted(seen, key=WEEKDAY_ORDER.index)


def check_schedule(
    schedule_type: Optional[ScheduleType],
    days_of_week: Optional[list[Weekday]],
    start_date: Optional[date],
    end_date: Optional[date],
) -> None:
    if schedule_type == ScheduleType.custom and not days_of_week:
        raise ValueError("A custom schedule needs at least one day in days_of_week.")
    if start_date and end_date and start_date > end_date:
        raise ValueError("start_date must be on or before end_date.")


# ═════════════════════════════════════════════════════════════════════
# Rule: Create / Update
# ═════════════════════════════════════════════════════════════════════


class _RuleFields(BaseModel):
    @field_validator("priority", "schedule_type", mode="before", check_fields=False)
    @classmethod
    def normalize_enum(cls, v: Any) -> Any:
        return _lower(v)

    @field_validator("days_of_week", mode="before", check_fields=False)
    @classmethod
    def normalize_days(cls, v: Any) -> Any:
        return _normalize_days(v)


class AutomationRuleCreate(_RuleFields):
    """Payload for creating a rule. ``{date}`` in templates becomes the due date."""

    client_id: uuid.UUID
    title_template: str = Field(..., min_length=1, max_length=255)
    description_template: Optional[str] = None
    assigned_to: Optional[uuid.UUID] = None
    priority: TaskPriority = TaskPriority.medium
    schedule_type: ScheduleType = ScheduleType.daily
    days_of_week: list[Weekday] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool = True

    @model_validator(mode="after")
    def validate_schedule(self) -> "AutomationRuleCreate":
        check_schedule(self.schedule_type, self.days_of_week, self.start_date, self.end_date)
        return self


class AutomationRuleUpdate(_RuleFields):
    """Partial update. Cross-field checks are re-run by the service on the merged rule."""

    client_id: Optional[uuid.UUID] = None
    title_template: Optional[str] = Field(None, min_length=1, max_length=255)
    description_template: Optional[str] = None
    assigned_to: Optional[uuid.UUID] = None
    priority: Optional[TaskPriority] = None
    schedule_type: Optional[ScheduleType] = None
    days_of_week: Optional[list[Weekday]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


# ═════════════════════════════════════════════════════════════════════
# Responses
# ═════════════════════════════════════════════════════════════════════


class AutomationRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    client_id: uuid.UUID
    title_template: str
    description_template: Optional[str] = None
    assigned_to: Optional[uuid.UUID] = None
    priority: TaskPriority
    schedule_type: ScheduleType
    days_of_week: list[Weekday] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool
    last_run_at: Optional[datetime] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime

    # Computed by service
    is_expired: bool = False


class AutomationRuleListOut(BaseModel):
    data: list[AutomationRuleOut]
    meta: PaginationMeta


class TaskOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    rule_id: Optional[uuid.UUID] = None
    client_id: Optional[uuid.UUID] = None
    title: str
    description: Optional[str] = None
    assigned_to: Optional[uuid.UUID] = None
    priority: TaskPriority
    due_date: date
    status: TaskStatus
    is_automated: bool
    created_at: datetime


class RunResultOut(BaseModel):
    """Outcome of a single rule invocation; ``task`` is null when nothing fired."""

    rule_id: uuid.UUID
    task: Optional[TaskOut] = None
