"""Automation router: rule CRUD, toggle, run-now, scheduled run, task history.

Rules are an administrative surface: every endpoint requires an approver role.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from hrdesk.auth.dependencies import require_approver
from hrdesk.auth.models import User
from hrdesk.automation.schemas import (
    AutomationRuleCreate,
    AutomationRuleListOut,
    AutomationRuleOut,
    AutomationRuleUpdate,
    RunResultOut,
    TaskOut,
)
from hrdesk.automation.service import AutomationService
from hrdesk.common import clock
from hrdesk.common.pagination import PaginationParams
from hrdesk.database import get_db

router = APIRouter(prefix="", tags=["automation"])


# ── GET /rules ──────────────────────────────────────────────────────

@router.get("/rules", response_model=AutomationRuleListOut)
async def list_rules(
    client_id: Optional[uuid.UUID] = Query(None),
    is_active: Optional[bool] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(require_approver()),
    db: AsyncSession = Depends(get_db),
):
    return await AutomationService.list_rules(
        db, pagination, client_id=client_id, is_active=is_active,
    )


# ── POST /rules ─────────────────────────────────────────────────────

@router.post("/rules", response_model=AutomationRuleOut, status_code=201)
async def create_rule(
    body: AutomationRuleCreate,
    user: User = Depends(require_approver()),
    db: AsyncSession = Depends(get_db),
):
    return await AutomationService.create_rule(db, body, actor_id=user.id)


# ── GET /rules/{id} ─────────────────────────────────────────────────

@router.get("/rules/{rule_id}", response_model=AutomationRuleOut)
async def get_rule(
    rule_id: uuid.UUID,
    user: User = Depends(require_approver()),
    db: AsyncSession = Depends(get_db),
):
    return await AutomationService.get_rule(db, rule_id)


# ── PATCH /rules/{id} ───────────────────────────────────────────────

@router.patch("/rules/{rule_id}", response_model=AutomationRuleOut)
async def update_rule(
    rule_id: uuid.UUID,
    body: AutomationRuleUpdate,
    user: User = Depends(require_approver()),
    db: AsyncSession = Depends(get_db),
):
    return await AutomationService.update_rule(db, rule_id, body, actor_id=user.id)


# ── DELETE /rules/{id} ──────────────────────────────────────────────

@router.delete("/rules/{rule_id}", status_code=204)
async def delete_rule(
    rule_id: uuid.UUID,
    user: User = Depends(require_approver()),
    db: AsyncSession = Depends(get_db),
):
    await AutomationService.delete_rule(db, rule_id, actor_id=user.id)
    return Response(status_code=204)


# ── PUT /rules/{id}/toggle ──────────────────────────────────────────

@router.put("/rules/{rule_id}/toggle", response_model=AutomationRuleOut)
async def toggle_rule(
    rule_id: uuid.UUID,
    user: User = Depends(require_approver()),
    db: AsyncSession = Depends(get_db),
):
    """Pause or resume a rule. Expired rules answer 409."""
    return await AutomationService.toggle_rule(db, rule_id, actor_id=user.id)


# ── POST /rules/{id}/run-now ────────────────────────────────────────

@router.post("/rules/{rule_id}/run-now", response_model=TaskOut, status_code=201)
async def run_rule_now(
    rule_id: uuid.UUID,
    user: User = Depends(require_approver()),
    db: AsyncSession = Depends(get_db),
):
    """Generate today's task immediately, ignoring schedule and active flag."""
    return await AutomationService.run_rule_now(db, rule_id, actor_id=user.id)


# ── POST /rules/{id}/run ────────────────────────────────────────────

@router.post("/rules/{rule_id}/run", response_model=RunResultOut)
async def run_rule(
    rule_id: uuid.UUID,
    as_of: Optional[date] = Query(None, description="Evaluation date; defaults to today"),
    user: User = Depends(require_approver()),
    db: AsyncSession = Depends(get_db),
):
    """Evaluate the rule as the daily trigger would; ``task`` is null when it does not fire."""
    task = await AutomationService.run_rule(db, rule_id, as_of or clock.today())
    return RunResultOut(rule_id=rule_id, task=task)


# ── GET /rules/{id}/tasks ───────────────────────────────────────────

@router.get("/rules/{rule_id}/tasks", response_model=list[TaskOut])
async def list_rule_tasks(
    rule_id: uuid.UUID,
    user: User = Depends(require_approver()),
    db: AsyncSession = Depends(get_db),
):
    return await AutomationService.list_rule_tasks(db, rule_id)
