"""
Date helpers.

Supabase returns ISO-8601 timestamps (``2026-01-05T15:07:00+00:00``);
clients sometimes send a trailing ``Z``. Everything here accepts either,
plus ``datetime`` objects, and treats naive values as UTC.
"""

from datetime import datetime, timezone
from typing import Optional, Union

DateLike = Union[str, datetime, None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: DateLike) -> Optional[datetime]:
    """Parse ``value`` to an aware datetime, or None if empty or unreadable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_iso(value: DateLike) -> Optional[str]:
    dt = parse_datetime(value)
    return dt.isoformat() if dt else None


def format_date_short(value: DateLike) -> str:
    """``Jan 5, 2026``"""
    dt = parse_datetime(value)
    if dt is None:
        return ""
    return f"{dt.strftime('%b')} {dt.day}, {dt.year}"


def format_date_long(value: DateLike) -> str:
    """``January 5, 2026``"""
    dt = parse_datetime(value)
    if dt is None:
        return ""
    return f"{dt.strftime('%B')} {dt.day}, {dt.year}"


def format_date_full(value: DateLike) -> str:
    """``January 5, 2026 at 3:07 PM``"""
    dt = parse_datetime(value)
    if dt is None:
        return ""
    hour = dt.hour % 12 or 12
    suffix = "AM" if dt.hour < 12 else "PM"
    return f"{format_date_long(dt)} at {hour}:{dt.minute:02d} {suffix}"
