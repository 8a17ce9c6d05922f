"""Automation service layer: recurring task rules and their invocation.

A rule fires at most one task per invocation. The engine keeps no timer
state: ``run_due_rules`` is called once a day by ``scripts/run_automation.py``
and ``run_rule_now`` is the manual trigger.

Invocations on the same calendar day are not deduplicated. A scheduled run
and a manual run-now on the same day both create a task.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hrdesk.automation.models import AutomationRule, Task
from hrdesk.automation.schemas import (
    AutomationRuleCreate,
    AutomationRuleListOut,
    AutomationRuleOut,
    AutomationRuleUpdate,
    TaskOut,
    check_schedule,
)
from hrdesk.common import clock
from hrdesk.common.audit import create_audit_entry
from hrdesk.common.calendar import matches_schedule
from hrdesk.common.constants import ENTITY_AUTOMATION_RULE, ScheduleType, TaskStatus
from hrdesk.common.exceptions import (
    NotFoundException,
    RuleExpiredException,
    ValidationException,
)
from hrdesk.common.pagination import PaginationParams, paginate
from hrdesk.crm.models import Client
from hrdesk.notifications.service import notify_task_generated

logger = logging.getLogger(__name__)

TASK_TITLE_MAX_LENGTH = 255


def render_template(
    template: Optional[str],
    as_of: date,
    max_length: Optional[int] = None,
) -> Optional[str]:
    """Substitute ``{date}`` with the ISO due date; other text is kept verbatim.

    ``max_length`` clips the rendered text to a bounded column width.
    """
    if template is None:
        return None
    rendered = template.replace("{date}", as_of.isoformat())
    if max_length is not None:
        rendered = rendered[:max_length]
    return rendered


# ═════════════════════════════════════════════════════════════════════
# AutomationService
# ═════════════════════════════════════════════════════════════════════


class AutomationService:
    """Async automation operations: rule CRUD, toggle, run, run-now, daily sweep."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _get_rule(db: AsyncSession, rule_id: uuid.UUID) -> AutomationRule:
        result = await db.execute(
            select(AutomationRule).where(AutomationRule.id == rule_id)
        )
        rule = result.scalars().first()
        if rule is None:
            raise NotFoundException("AutomationRule", str(rule_id))
        return rule

    @staticmethod
    def _build_rule_response(rule: AutomationRule) -> AutomationRuleOut:
        out = AutomationRuleOut.model_validate(rule)
        out.is_expired = rule.expired_as_of(clock.today())
        return out

    @staticmethod
    def _snapshot(rule: AutomationRule) -> dict:
        return {
            "title_template": rule.title_template,
            "assigned_to": str(rule.assigned_to) if rule.assigned_to else None,
            "priority": rule.priority.value,
            "schedule_type": rule.schedule_type.value,
            "days_of_week": list(rule.days_of_week or []),
            "start_date": rule.start_date.isoformat() if rule.start_date else None,
            "end_date": rule.end_date.isoformat() if rule.end_date else None,
            "is_active": rule.is_active,
        }

    @staticmethod
    async def _ensure_client(db: AsyncSession, client_id: uuid.UUID) -> None:
        if await db.get(Client, client_id) is None:
            raise NotFoundException("Client", str(client_id))

    @staticmethod
    async def _generate_task(
        db: AsyncSession,
        rule: AutomationRule,
        as_of: date,
        *,
        actor_id: Optional[uuid.UUID] = None,
        action: str = "run",
    ) -> TaskOut:
        """Create the task for one invocation, stamp the rule, audit and notify."""
        task = Task(
            rule_id=rule.id,
            client_id=rule.client_id,
            title=render_template(rule.title_template, as_of, TASK_TITLE_MAX_LENGTH),
            description=render_template(rule.description_template, as_of),
            assigned_to=rule.assigned_to,
            priority=rule.priority,
            due_date=as_of,
            status=TaskStatus.pending,
            is_automated=True,
        )
        db.add(task)
        rule.last_run_at = clock.utcnow()
        await db.flush()

        await create_audit_entry(
            db,
            action=action,
            entity_type=ENTITY_AUTOMATION_RULE,
            entity_id=rule.id,
            actor_id=actor_id,
            new_values={"task_id": str(task.id), "due_date": as_of.isoformat()},
        )
        logger.info("Rule %s generated task %s due %s", rule.id, task.id, as_of)

        out = TaskOut.model_validate(task)
        await notify_task_generated(db, task)
        return out

    # ─────────────────────────────────────────────────────────────────
    # Invocation
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def run_rule(
        db: AsyncSession,
        rule_id: uuid.UUID,
        as_of: date,
    ) -> Optional[TaskOut]:
        """Scheduled invocation. Returns ``None`` when the rule does not fire.

        Skips inactive rules, expired rules (end date before today) and days
        outside the rule's schedule or window.
        """
        rule = await AutomationService._get_rule(db, rule_id)

        if not rule.is_active:
            logger.debug("Rule %s skipped: inactive", rule_id)
            return None
        if rule.expired_as_of(clock.today()):
            logger.debug("Rule %s skipped: expired on %s", rule_id, rule.end_date)
            return None
        if not matches_schedule(as_of, rule):
            logger.debug("Rule %s skipped: no match for %s", rule_id, as_of)
            return None

        return await AutomationService._generate_task(db, rule, as_of)

    @staticmethod
    async def run_rule_now(
        db: AsyncSession,
        rule_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
    ) -> TaskOut:
        """Force one invocation dated today, ignoring schedule and active flag."""
        rule = await AutomationService._get_rule(db, rule_id)
        today = clock.today()
        if rule.expired_as_of(today):
            raise RuleExpiredException(str(rule_id), rule.end_date)

        return await AutomationService._generate_task(
            db, rule, today, actor_id=actor_id, action="run_now",
        )

    @staticmethod
    async def run_due_rules(
        db: AsyncSession,
        as_of: Optional[date] = None,
    ) -> list[TaskOut]:
        """Evaluate every active, non-expired rule for ``as_of`` (default today).

        Each rule runs in its own savepoint; a database error on one rule is
        logged and rolled back without losing the tasks of the others.
        """
        as_of = as_of or clock.today()
        today = clock.today()

        result = await db.execute(
            select(AutomationRule.id)
            .where(
                AutomationRule.is_active.is_(True),
                (AutomationRule.end_date.is_(None)) | (AutomationRule.end_date >= today),
            )
            .order_by(AutomationRule.created_at)
        )
        rule_ids = list(result.scalars().all())

        tasks: list[TaskOut] = []
        failed = 0
        for rule_id in rule_ids:
            try:
                async with db.begin_nested():
                    task = await AutomationService.run_rule(db, rule_id, as_of)
            except SQLAlchemyError:
                failed += 1
                logger.exception("Rule %s failed during sweep for %s", rule_id, as_of)
                continue
            if task is not None:
                tasks.append(task)

        logger.info(
            "Automation sweep for %s: %d rule(s) evaluated, %d task(s) generated, %d failed",
            as_of, len(rule_ids), len(tasks), failed,
        )
        return tasks

    # ─────────────────────────────────────────────────────────────────
    # Toggle
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def toggle_rule(
        db: AsyncSession,
        rule_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
    ) -> AutomationRuleOut:
        """Flip ``is_active``. Expired rules are frozen."""
        rule = await AutomationService._get_rule(db, rule_id)
        if rule.expired_as_of(clock.today()):
            raise RuleExpiredException(str(rule_id), rule.end_date)

        old_active = rule.is_active
        rule.is_active = not old_active
        rule.updated_at = clock.utcnow()
        await db.flush()

        await create_audit_entry(
            db,
            action="toggle",
            entity_type=ENTITY_AUTOMATION_RULE,
            entity_id=rule.id,
            actor_id=actor_id,
            old_values={"is_active": old_active},
            new_values={"is_active": rule.is_active},
        )
        return AutomationService._build_rule_response(rule)

    # ─────────────────────────────────────────────────────────────────
    # CRUD
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def create_rule(
        db: AsyncSession,
        data: AutomationRuleCreate,
        actor_id: Optional[uuid.UUID] = None,
    ) -> AutomationRuleOut:
        await AutomationService._ensure_client(db, data.client_id)

        rule = AutomationRule(
            client_id=data.client_id,
            title_template=data.title_template,
            description_template=data.description_template,
            assigned_to=data.assigned_to,
            priority=data.priority,
            schedule_type=data.schedule_type,
            days_of_week=[d.value for d in data.days_of_week],
            start_date=data.start_date,
            end_date=data.end_date,
            is_active=data.is_active,
            created_by=actor_id,
        )
        db.add(rule)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type=ENTITY_AUTOMATION_RULE,
            entity_id=rule.id,
            actor_id=actor_id,
            new_values=AutomationService._snapshot(rule),
        )
        return AutomationService._build_rule_response(rule)

    @staticmethod
    async def update_rule(
        db: AsyncSession,
        rule_id: uuid.UUID,
        data: AutomationRuleUpdate,
        actor_id: Optional[uuid.UUID] = None,
    ) -> AutomationRuleOut:
        """Patch a rule. The merged schedule is validated before anything changes."""
        rule = await AutomationService._get_rule(db, rule_id)
        fields = data.model_dump(exclude_unset=True)

        if fields.get("client_id"):
            await AutomationService._ensure_client(db, fields["client_id"])

        schedule_type = fields.get("schedule_type") or rule.schedule_type
        days = fields["days_of_week"] if "days_of_week" in fields else rule.days_of_week
        start_date = fields["start_date"] if "start_date" in fields else rule.start_date
        end_date = fields["end_date"] if "end_date" in fields else rule.end_date
        try:
            check_schedule(ScheduleType(schedule_type), days, start_date, end_date)
        except ValueError as exc:
            raise ValidationException({"schedule": [str(exc)]})

        old_values = AutomationService._snapshot(rule)
        for key, value in fields.items():
            if key == "days_of_week":
                value = [getattr(d, "value", d) for d in (value or [])]
            elif key in ("client_id", "title_template", "priority", "schedule_type") and value is None:
                continue
            setattr(rule, key, value)
        rule.updated_at = clock.utcnow()
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type=ENTITY_AUTOMATION_RULE,
            entity_id=rule.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=AutomationService._snapshot(rule),
        )
        return AutomationService._build_rule_response(rule)

    @staticmethod
    async def delete_rule(
        db: AsyncSession,
        rule_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Delete a rule. Tasks it already generated are kept with ``rule_id`` cleared."""
        rule = await AutomationService._get_rule(db, rule_id)
        old_values = AutomationService._snapshot(rule)
        await db.delete(rule)
        await db.flush()

        await create_audit_entry(
            db,
            action="delete",
            entity_type=ENTITY_AUTOMATION_RULE,
            entity_id=rule_id,
            actor_id=actor_id,
            old_values=old_values,
        )

    @staticmethod
    async def get_rule(db: AsyncSession, rule_id: uuid.UUID) -> AutomationRuleOut:
        rule = await AutomationService._get_rule(db, rule_id)
        return AutomationService._build_rule_response(rule)

    @staticmethod
    async def list_rules(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        client_id: Optional[uuid.UUID] = None,
        is_active: Optional[bool] = None,
    ) -> AutomationRuleListOut:
        query = select(AutomationRule).order_by(AutomationRule.created_at.desc())
        if client_id:
            query = query.where(AutomationRule.client_id == client_id)
        if is_active is not None:
            query = query.where(AutomationRule.is_active == is_active)

        rows, meta = await paginate(db, query, pagination, model=AutomationRule)
        return AutomationRuleListOut(
            data=[AutomationService._build_rule_response(r) for r in rows],
            meta=meta,
        )

    @staticmethod
    async def list_rule_tasks(
        db: AsyncSession,
        rule_id: uuid.UUID,
    ) -> list[TaskOut]:
        """Tasks generated by a rule, newest due date first."""
        await AutomationService._get_rule(db, rule_id)
        result = await db.execute(
            select(Task)
            .where(Task.rule_id == rule_id)
            .order_by(Task.due_date.desc(), Task.created_at.desc())
        )
        return [TaskOut.model_validate(t) for t in result.scalars().all()]
