"""Notification Pydantic schemas for request / response validation."""


import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from hrdesk.common.constants import NotificationType
from hrdesk.common.pagination import PaginationMeta


# ── Internal (used by service, not exposed via API) ─────────────────

class NotificationEvent(BaseModel):
    """A state-change event to fan out; one row is written per recipient."""

    type: NotificationType = NotificationType.info
    title: str
    message: str
    entity_type: Optional[str] = None
    entity_id: Optional[uuid.UUID] = None


# ── Requests ────────────────────────────────────────────────────────

class MarkManyReadRequest(BaseModel):
    ids: list[uuid.UUID] = Field(..., min_length=1, max_length=100)


# ── Responses ───────────────────────────────────────────────────────

class NotificationResponse(BaseModel):
    """Single notification in API responses."""

    id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    entity_type: Optional[str] = None
    entity_id: Optional[uuid.UUID] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListMeta(PaginationMeta):
    """Extends standard pagination meta with unread count."""

    unread: int


class NotificationListResponse(BaseModel):
    """Paginated list of notifications with unread count in meta."""

    data: list[NotificationResponse]
    meta: NotificationListMeta
