"""Automation ORM models: AutomationRule, Task."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from hrdesk.common.constants import ScheduleType, TaskPriority, TaskStatus
from hrdesk.database import Base


class AutomationRule(Base):
    """Recurring-task template fired on a calendar cadence."""

    __tablename__ = "automation_rules"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title_template: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description_template: Mapped[Optional[str]] = mapped_column(sa.Text)
    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL")
    )
    priority: Mapped[TaskPriority] = mapped_column(
        sa.Enum(TaskPriority, name="task_priority"),
        nullable=False,
        default=TaskPriority.medium,
    )
    schedule_type: Mapped[ScheduleType] = mapped_column(
        sa.Enum(ScheduleType, name="schedule_type"),
        nullable=False,
        default=ScheduleType.daily,
    )
    # List of weekday codes ("mon" … "sun"); only read for custom schedules.
    days_of_week: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    start_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    last_run_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def expired_as_of(self, today: date) -> bool:
        """Past its end date. Expired rules are frozen and produce no tasks."""
        return self.end_date is not None and self.end_date < today

    def __repr__(self) -> str:
        return f"<AutomationRule {self.title_template!r} ({self.schedule_type.value})>"


class Task(Base):
    """Work item; ``rule_id`` is set when generated by an automation rule."""

    __tablename__ = "tasks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    rule_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("automation_rules.id", ondelete="SET NULL"),
        index=True,
    )
    client_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("clients.id", ondelete="CASCADE")
    )
    title: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    assigned_to: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL")
    )
    priority: Mapped[TaskPriority] = mapped_column(
        sa.Enum(TaskPriority, name="task_priority"),
        nullable=False,
        default=TaskPriority.medium,
    )
    due_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    status: Mapped[TaskStatus] = mapped_column(
        sa.Enum(TaskStatus, name="task_status"),
        nullable=False,
        default=TaskStatus.pending,
    )
    is_automated: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<Task {self.title!r} due {self.due_date}>"
