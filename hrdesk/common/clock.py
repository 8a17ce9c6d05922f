"""Clock access for services.

Services never call ``datetime.now()`` directly; they go through this module
so tests can pin "today" with ``patch("hrdesk.common.clock.today", ...)``.
"""

from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Current timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def today() -> date:
    """Current calendar date (UTC)."""
    return utcnow().date()
