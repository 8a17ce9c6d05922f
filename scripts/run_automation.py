#!/usr/bin/env python3
"""Automation sweep: daily cron entry point for recurring task rules.

Evaluates every active, non-expired automation rule for one calendar day
and creates the tasks that fall due. Run once per day:
    5 0 * * *

Usage:
    python scripts/run_automation.py                   # today
    python scripts/run_automation.py --date 2026-03-02 # backfill one day
    python scripts/run_automation.py --dry-run         # evaluate, then roll back

Running twice for the same day creates the tasks twice; rule invocations
are not deduplicated.

Exit codes:
    0 = sweep completed
    1 = sweep failed (nothing committed)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

# Load .env from project root so the sweep works from any cwd (cron)
load_dotenv(PROJECT_ROOT / ".env")

from hrdesk.automation.service import AutomationService  # noqa: E402
from hrdesk.config import configure_logging  # noqa: E402
from hrdesk.database import async_session_factory, engine  # noqa: E402

configure_logging()
logger = logging.getLogger("run_automation")


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"'{value}' is not a YYYY-MM-DD date")


async def run_sweep(as_of: date | None, dry_run: bool) -> int:
    """Run one sweep in its own transaction; returns the number of tasks created."""
    try:
        async with async_session_factory() as session:
            transaction = await session.begin()
            try:
                tasks = await AutomationService.run_due_rules(session, as_of)
                if dry_run:
                    await transaction.rollback()
                    logger.info("Dry run: %d task(s) would be created", len(tasks))
                else:
                    await transaction.commit()
            except Exception:
                await transaction.rollback()
                raise

        for task in tasks:
            logger.info("  %s  %-50s  due %s", task.id, task.title, task.due_date)
        return len(tasks)
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(
        description="Automation sweep: create tasks for every rule due on a date",
    )
    parser.add_argument(
        "--date", type=_parse_date, default=None,
        help="Evaluation date YYYY-MM-DD (default: today)",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Evaluate rules and roll back instead of committing",
    )
    args = parser.parse_args()

    logger.info("Automation sweep starting (date=%s, dry_run=%s)", args.date or "today", args.dry_run)
    try:
        created = asyncio.run(run_sweep(args.date, args.dry_run))
    except Exception:
        logger.exception("Automation sweep failed; no tasks were committed")
        sys.exit(1)

    logger.info("Automation sweep complete: %d task(s)", created)


if __name__ == "__main__":
    main()
