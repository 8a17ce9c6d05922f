"""Common module: shared utilities for HR Desk."""

from hrdesk.common.audit import AuditTrail, create_audit_entry
from hrdesk.common.constants import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    EmployeeStatus,
    LeaveStatus,
    NotificationType,
    PayType,
    ScheduleType,
    TaskPriority,
    TaskStatus,
    UserRole,
    Weekday,
)
from hrdesk.common.exceptions import (
    AppException,
    ForbiddenException,
    InsufficientCreditsException,
    InvalidRangeException,
    InvalidTransitionException,
    NotFoundException,
    OverlapConflictException,
    RuleExpiredException,
    ValidationException,
    register_exception_handlers,
)
from hrdesk.common.pagination import (
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Constants / Enums
    "EmployeeStatus",
    "LeaveStatus",
    "NotificationType",
    "PayType",
    "ScheduleType",
    "TaskPriority",
    "TaskStatus",
    "UserRole",
    "Weekday",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ForbiddenException",
    "InsufficientCreditsException",
    "InvalidRangeException",
    "InvalidTransitionException",
    "NotFoundException",
    "OverlapConflictException",
    "RuleExpiredException",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
