"""Notification endpoints: list, mark read, unread count, cleanup."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hrdesk.auth.dependencies import get_current_user
from hrdesk.auth.models import User
from hrdesk.common.constants import NotificationType
from hrdesk.common.pagination import PaginationParams
from hrdesk.database import get_db
from hrdesk.notifications.schemas import (
    MarkManyReadRequest,
    NotificationListResponse,
    NotificationResponse,
)
from hrdesk.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["notifications"])


# ── GET /: list current user's notifications ───────────────────────

@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    is_read: Optional[bool] = Query(default=None, description="Filter by read status"),
    type: Optional[NotificationType] = Query(
        default=None, alias="type", description="Filter by notification type"
    ),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List notifications for the authenticated user (paginated)."""
    return await NotificationService.get_notifications(
        db,
        user.id,
        pagination,
        is_read=is_read,
        notification_type=type,
    )


# ── GET /unread-count: badge count ─────────────────────────────────
# NOTE: fixed paths are registered before /{notification_id}/read so
# FastAPI never treats them as a UUID path parameter.

@router.get("/unread-count")
async def unread_count(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Return the number of unread notifications (for header badge)."""
    count = await NotificationService.get_unread_count(db, user.id)
    return {"data": {"count": count}}


# ── PUT /read-all: bulk mark all as read ───────────────────────────

@router.put("/read-all")
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark all unread notifications as read for the authenticated user."""
    count = await NotificationService.mark_all_read(db, user.id)
    return {"message": "All notifications marked as read", "data": {"count": count}}


# ── PUT /read-many: mark a selection as read ───────────────────────

@router.put("/read-many")
async def mark_many_read(
    body: MarkManyReadRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark the given notifications read; ids belonging to others are ignored."""
    count = await NotificationService.mark_many_read(db, user.id, body.ids)
    return {"message": "Notifications marked as read", "data": {"count": count}}


# ── DELETE /cleanup: drop old read notifications ───────────────────

@router.delete("/cleanup")
async def cleanup(
    older_than_days: Optional[int] = Query(
        default=None, ge=1, le=365,
        description="Age threshold in days; defaults to NOTIFICATION_RETENTION_DAYS",
    ),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Delete the user's read notifications older than the threshold."""
    count = await NotificationService.cleanup(db, user.id, older_than_days=older_than_days)
    return {"message": "Old notifications removed", "data": {"count": count}}


# ── PUT /{notification_id}/read: mark single as read ───────────────

@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark a single notification as read."""
    notification = await NotificationService.mark_read(db, notification_id, user.id)
    return {
        "message": "Notification marked as read",
        "data": NotificationResponse.model_validate(notification),
    }
