"""Enums and constants for HR Desk: matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Employee / Core HR ──────────────────────────────────────────────

class EmployeeStatus(str, enum.Enum):
    active = "active"
    on_leave = "on_leave"
    resigned = "resigned"
    terminated = "terminated"


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    admin = "admin"
    hr = "hr"
    employee = "employee"


# ── CRM ─────────────────────────────────────────────────────────────

class ClientStatus(str, enum.Enum):
    active = "active"
    paused = "paused"
    inactive = "inactive"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class PayType(str, enum.Enum):
    paid = "paid"
    unpaid = "unpaid"
    auto = "auto"


# ── Tasks / Automation ──────────────────────────────────────────────

class TaskStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class TaskPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


class ScheduleType(str, enum.Enum):
    daily = "daily"
    weekdays = "weekdays"
    custom = "custom"


class Weekday(str, enum.Enum):
    """Day codes in ``date.weekday()`` order (Monday = 0)."""

    mon = "mon"
    tue = "tue"
    wed = "wed"
    thu = "thu"
    fri = "fri"
    sat = "sat"
    sun = "sun"


WEEKDAY_ORDER: tuple[Weekday, ...] = tuple(Weekday)


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    info = "info"
    action_required = "action_required"
    approval = "approval"
    reminder = "reminder"
    alert = "alert"


# ── Entity names used in audit rows and notification targets ────────

ENTITY_LEAVE_REQUEST = "leave_requests"
ENTITY_AUTOMATION_RULE = "automation_rules"
ENTITY_TASK = "tasks"
ENTITY_CLIENT = "clients"

# ── Misc constants ──────────────────────────────────────────────────

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20
