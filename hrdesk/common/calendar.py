"""Calendar utilities: inclusive day counts, month rollover, schedule matching.

Pure functions, no I/O. ``matches_schedule`` accepts anything exposing the
automation-rule schedule attributes (ORM row or Pydantic schema).
"""

from __future__ import annotations

import calendar
from datetime import date
from typing import Any, Iterable, Optional, Union

from hrdesk.common.constants import WEEKDAY_ORDER, ScheduleType, Weekday
from hrdesk.common.exceptions import InvalidRangeException

DateLike = Union[date, str]


def _parse_date(value: DateLike, start: Any, end: Any) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except (TypeError, ValueError):
        raise InvalidRangeException(start, end, f"'{value}' is not a valid date.")


def to_date(value: DateLike) -> date:
    """Coerce a date or ISO-8601 string to ``date``; raises InvalidRangeException."""
    return _parse_date(value, value, value)


def days_between_inclusive(start: DateLike, end: DateLike) -> int:
    """Number of calendar days in ``[start, end]``, both ends counted.

    Raises:
        InvalidRangeException: a bound fails to parse or ``end < start``.
    """
    start_d = _parse_date(start, start, end)
    end_d = _parse_date(end, start, end)
    if end_d < start_d:
        raise InvalidRangeException(start_d, end_d, "end date is before start date.")
    return (end_d - start_d).days + 1


def add_months(value: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's length.

    >>> add_months(date(2026, 1, 31), 1)
    datetime.date(2026, 2, 28)
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(value.day, last_day))


def contract_end_date(
    start: Optional[date],
    duration_months: Optional[int],
) -> Optional[date]:
    """End of a contract/period, or ``None`` when either input is missing."""
    if not start or not duration_months:
        return None
    return add_months(start, int(duration_months))


def weekday_code(value: date) -> Weekday:
    return WEEKDAY_ORDER[value.weekday()]


def _normalize_days(days: Optional[Iterable[Any]]) -> set[Weekday]:
    """Weekday set from codes in any case; an unknown code raises ValueError."""
    result: set[Weekday] = set()
    for day in days or ():
        code = str(getattr(day, "value", day)).strip().lower()
        try:
            result.add(Weekday(code))
        except ValueError:
            raise ValueError(f"Unknown weekday code: {day!r}")
    return result


def within_window(
    value: date,
    start_date: Optional[date],
    end_date: Optional[date],
) -> bool:
    """True when ``value`` lies in ``[start_date, end_date]``; unset bounds are open."""
    if start_date is not None and value < start_date:
        return False
    if end_date is not None and value > end_date:
        return False
    return True


def matches_schedule(value: date, rule: Any) -> bool:
    """Whether ``rule`` fires on ``value``.

    daily → every day; weekdays → Mon–Fri; custom → weekday in
    ``rule.days_of_week``. The rule's optional start/end window applies on
    top. The ``is_active`` flag is not consulted here.
    """
    if not within_window(value, rule.start_date, rule.end_date):
        return False

    schedule = ScheduleType(getattr(rule.schedule_type, "value", rule.schedule_type))
    if schedule == ScheduleType.daily:
        return True
    if schedule == ScheduleType.weekdays:
        return value.weekday() < 5
    return weekday_code(value) in _normalize_days(rule.days_of_week)
