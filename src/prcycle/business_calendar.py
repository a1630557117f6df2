"""Business-hour arithmetic for cycle-time phases.

A business day is any Monday to Friday, counted as a full 24-hour block. No
holiday calendar is applied and timestamps are used as given, so callers must
pass comparable values (for example both UTC).
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

HOURS_PER_BUSINESS_DAY = 24
_SECONDS_PER_HOUR = 3600.0


def is_business_day(value: date) -> bool:
    """Return whether ``value`` falls on Monday to Friday."""
    return value.weekday() < 5


def _hours(delta: timedelta) -> float:
    return delta.total_seconds() / _SECONDS_PER_HOUR


def _midnight(day: date, reference: datetime) -> datetime:
    return datetime.combine(day, time.min, tzinfo=reference.tzinfo)


def business_hours(start: datetime, end: datetime) -> float:
    """Return elapsed hours between ``start`` and ``end`` that fall on business days.

    Business logic:
    - ``start >= end`` yields ``0``.
    - Within a single day the literal elapsed time counts when that day is a
      business day.
    - Otherwise the partial first day (up to midnight), every whole business
      day strictly in between (24 hours each), and the partial last day (from
      midnight to ``end``) are summed. Saturdays and Sundays contribute nothing.
    """
    if start >= end:
        return 0.0

    start_day = start.date()
    end_day = end.date()

    if start_day == end_day:
        return _hours(end - start) if is_business_day(start_day) else 0.0

    total = 0.0
    if is_business_day(start_day):
        total += _hours(_midnight(start_day + timedelta(days=1), start) - start)

    current = start_day + timedelta(days=1)
    while current < end_day:
        if is_business_day(current):
            total += HOURS_PER_BUSINESS_DAY
        current += timedelta(days=1)

    if is_business_day(end_day):
        total += _hours(end - _midnight(end_day, end))

    return total


def business_days_from_hours(hours: float) -> float:
    """Convert business hours to business days, rounded to one decimal."""
    if hours <= 0:
        return 0.0
    return round(hours / HOURS_PER_BUSINESS_DAY, 1)


def format_hours(hours: float) -> str:
    """Format business hours as ``"25.50h (1.1d)"``."""
    if hours <= 0:
        return "0h (0d)"
    return f"{hours:.2f}h ({business_days_from_hours(hours)}d)"
