"""ISO-8601 timestamp helpers shared by the snapshot boundary and the engine."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """Return the current time; used only where source timestamps are missing."""
    return datetime.now(timezone.utc)


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse GitHub ISO8601 timestamps into UTC datetimes.

    Naive values are assumed to be UTC; offset-bearing values are converted.
    Empty values return ``None``.

    Raises:
        ValueError: If ``value`` is not a valid ISO8601 timestamp.
    """
    if not value:
        return None

    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def coerce_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Accept either a datetime or an ISO8601 string, returning UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return parse_datetime(value)


def format_datetime(value: datetime) -> str:
    """Format a datetime as ISO8601, using the ``Z`` suffix for UTC."""
    if value.tzinfo is None:
        return value.isoformat()

    utc_value = value.astimezone(timezone.utc)
    return utc_value.isoformat().replace("+00:00", "Z")
