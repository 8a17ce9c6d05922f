"""Notification service: dispatcher, read/cleanup operations, event helpers.

Dispatch is best-effort: notifications are written inside a SAVEPOINT, so a
failure rolls back only the notification rows and is logged, never raised.
The originating leave/automation transition stays intact.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import timedelta
from typing import Iterable, NamedTuple, Optional, Union

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hrdesk.auth.models import User
from hrdesk.common import clock
from hrdesk.common.constants import (
    ENTITY_LEAVE_REQUEST,
    ENTITY_TASK,
    NotificationType,
    UserRole,
)
from hrdesk.common.exceptions import ForbiddenException, NotFoundException
from hrdesk.common.pagination import PaginationParams
from hrdesk.config import settings
from hrdesk.notifications.models import Notification
from hrdesk.notifications.schemas import (
    NotificationEvent,
    NotificationListMeta,
    NotificationListResponse,
    NotificationResponse,
)

logger = logging.getLogger(__name__)


class EmployeeUsers(NamedTuple):
    """Recipient marker: every active user account linked to an employee."""

    employee_id: uuid.UUID


Recipients = Union[uuid.UUID, EmployeeUsers, Iterable[UserRole]]


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        event: NotificationEvent,
    ) -> Notification:
        """Create a new notification and flush to DB."""
        notification = Notification(
            recipient_id=recipient_id,
            type=event.type,
            title=event.title,
            message=event.message,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
        )
        db.add(notification)
        await db.flush()
        return notification

    @staticmethod
    async def resolve_recipients(
        db: AsyncSession,
        recipients: Recipients,
    ) -> list[uuid.UUID]:
        """Turn a direct user id, an employee or a role set into user ids."""
        if isinstance(recipients, uuid.UUID):
            return [recipients]

        if isinstance(recipients, EmployeeUsers):
            result = await db.execute(
                select(User.id).where(
                    User.employee_id == recipients.employee_id,
                    User.is_active.is_(True),
                )
            )
            return list(result.scalars().all())

        roles = {UserRole(r) for r in recipients}
        if not roles:
            return []
        result = await db.execute(
            select(User.id)
            .where(User.role.in_(list(roles)), User.is_active.is_(True))
            .order_by(User.created_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def dispatch(
        db: AsyncSession,
        recipients: Recipients,
        event: NotificationEvent,
    ) -> list[Notification]:
        """Fan ``event`` out to every resolved recipient.

        Never raises: on any failure the savepoint is rolled back, the error
        logged, and an empty list returned.
        """
        try:
            async with db.begin_nested():
                recipient_ids = await NotificationService.resolve_recipients(db, recipients)
                created = [
                    await NotificationService.create_notification(
                        db, recipient_id=rid, event=event,
                    )
                    for rid in recipient_ids
                ]
        except Exception:
            logger.exception(
                "Notification dispatch failed (title=%r, entity=%s/%s)",
                event.title, event.entity_type, event.entity_id,
            )
            return []

        logger.debug("Dispatched %r to %d recipient(s)", event.title, len(created))
        return created

    @staticmethod
    async def notify_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        event: NotificationEvent,
    ) -> list[Notification]:
        """Dispatch to every active user account linked to an employee."""
        return await NotificationService.dispatch(db, EmployeeUsers(employee_id), event)

    # ── Read side ───────────────────────────────────────────────────

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        user_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
    ) -> NotificationListResponse:
        """Return paginated notifications for a user, newest first."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == user_id)
            .order_by(Notification.created_at.desc())
        )

        if is_read is not None:
            query = query.where(Notification.is_read == is_read)
        if notification_type is not None:
            query = query.where(Notification.type == notification_type)

        count_q = select(func.count()).select_from(query.order_by(None).subquery())
        total: int = (await db.execute(count_q)).scalar_one()

        rows = (
            await db.execute(
                query.offset(pagination.offset).limit(pagination.page_size)
            )
        ).scalars().all()

        total_pages = math.ceil(total / pagination.page_size) if total else 0

        # Unread count (always unfiltered, for the badge)
        unread = await NotificationService.get_unread_count(db, user_id)

        return NotificationListResponse(
            data=[NotificationResponse.model_validate(n) for n in rows],
            meta=NotificationListMeta(
                page=pagination.page,
                page_size=pagination.page_size,
                total=total,
                total_pages=total_pages,
                has_next=pagination.page < total_pages,
                has_prev=pagination.page > 1,
                unread=unread,
            ),
        )

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> Notification:
        """Mark a single notification as read. Verifies ownership."""
        result = await db.execute(
            select(Notification).where(Notification.id == notification_id)
        )
        notification = result.scalars().first()

        if notification is None:
            raise NotFoundException("Notification", notification_id)

        if notification.recipient_id != user_id:
            raise ForbiddenException("You can only mark your own notifications as read.")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = clock.utcnow()
            await db.flush()
        return notification

    @staticmethod
    async def mark_many_read(
        db: AsyncSession,
        user_id: uuid.UUID,
        notification_ids: list[uuid.UUID],
    ) -> int:
        """Mark the given notifications read; ids owned by others are ignored."""
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.id.in_(notification_ids),
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=clock.utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def mark_all_read(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> int:
        """Bulk-mark all unread notifications as read. Returns count updated."""
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=clock.utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def get_unread_count(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> int:
        """Return the number of unread notifications for a user."""
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()

    @staticmethod
    async def cleanup(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        older_than_days: Optional[int] = None,
    ) -> int:
        """Delete the user's *read* notifications older than N days."""
        days = older_than_days or settings.NOTIFICATION_RETENTION_DAYS
        cutoff = clock.utcnow() - timedelta(days=days)
        result = await db.execute(
            delete(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(True),
                Notification.created_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        logger.info("Removed %d read notification(s) for user %s", result.rowcount, user_id)
        return result.rowcount  # type: ignore[return-value]


# ── Cross-module event helpers ──────────────────────────────────────
# Imported by the leave and automation services. They accept the ORM
# object directly to avoid tight schema coupling.


def approver_roles() -> set[UserRole]:
    return {UserRole(r) for r in settings.approver_roles_list}


async def notify_leave_submitted(
    db: AsyncSession,
    leave_request,  # hrdesk.leave.models.LeaveRequest
) -> list[Notification]:
    """Tell every approver-role holder a request is waiting."""
    return await NotificationService.dispatch(
        db,
        approver_roles(),
        NotificationEvent(
            type=NotificationType.action_required,
            title="New Leave Request",
            message=(
                f"A {leave_request.pay_type.value} leave request from "
                f"{leave_request.start_date} to {leave_request.end_date} "
                f"({leave_request.total_days} day(s)) requires your approval."
            ),
            entity_type=ENTITY_LEAVE_REQUEST,
            entity_id=leave_request.id,
        ),
    )


async def notify_leave_approved(
    db: AsyncSession,
    leave_request,  # hrdesk.leave.models.LeaveRequest
) -> list[Notification]:
    return await NotificationService.notify_employee(
        db,
        leave_request.employee_id,
        NotificationEvent(
            type=NotificationType.approval,
            title="Leave Request Approved",
            message=(
                f"Your leave request from {leave_request.start_date} to "
                f"{leave_request.end_date} has been approved as "
                f"{leave_request.pay_type.value} leave."
            ),
            entity_type=ENTITY_LEAVE_REQUEST,
            entity_id=leave_request.id,
        ),
    )


async def notify_leave_rejected(
    db: AsyncSession,
    leave_request,  # hrdesk.leave.models.LeaveRequest
) -> list[Notification]:
    return await NotificationService.notify_employee(
        db,
        leave_request.employee_id,
        NotificationEvent(
            type=NotificationType.alert,
            title="Leave Request Rejected",
            message=(
                f"Your leave request from {leave_request.start_date} to "
                f"{leave_request.end_date} was rejected. "
                f"Comment: {leave_request.rejection_comment}"
            ),
            entity_type=ENTITY_LEAVE_REQUEST,
            entity_id=leave_request.id,
        ),
    )


async def notify_task_generated(
    db: AsyncSession,
    task,  # hrdesk.automation.models.Task
) -> list[Notification]:
    """Tell the assignee an automated task landed on their list."""
    if task.assigned_to is None:
        return []
    return await NotificationService.dispatch(
        db,
        task.assigned_to,
        NotificationEvent(
            type=NotificationType.reminder,
            title="New Automated Task",
            message=f"'{task.title}' is due on {task.due_date}.",
            entity_type=ENTITY_TASK,
            entity_id=task.id,
        ),
    )
