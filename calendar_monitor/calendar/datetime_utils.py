"""DateTime helpers for ICS calendar processing.

DTSTART/DTEND values arrive decoded by icalendar in one of three shapes,
matching the three textual forms found in feeds:

- aware datetime  (``YYYYMMDDTHHMMSSZ`` or a resolvable TZID)
- naive datetime  (``YYYYMMDDTHHMMSS``), wall time in a given timezone
- date            (``YYYYMMDD``), midnight in a given timezone

All values are normalized to timezone-aware UTC datetimes.
"""

import logging
from datetime import UTC, date, datetime, time, tzinfo
from typing import Any, Optional

from calendar_monitor.exceptions import InvalidDateTimeError

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y%m%d"


def ensure_utc(dt: datetime) -> datetime:
    """Return dt as an aware UTC datetime (naive values are assumed to be UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def localize(naive: datetime, tz: tzinfo) -> datetime:
    """Attach wall-clock time in tz to a naive datetime and convert it to UTC."""
    return naive.replace(tzinfo=tz).astimezone(UTC)


def local_midnight(day: date, tz: tzinfo) -> datetime:
    """Return midnight of the given local calendar day, as UTC."""
    return localize(datetime.combine(day, time.min), tz)


def to_utc_instant(value: Any, tz: tzinfo) -> datetime:
    """Normalize a decoded DATE or DATE-TIME value to an aware UTC datetime.

    Args:
        value: ``datetime`` or ``date`` as produced by icalendar's ``.dt``
        tz: Timezone used for naive local and date-only values

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        InvalidDateTimeError: If value is neither a date nor a datetime
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return localize(value, tz)
        return value.astimezone(UTC)
    if isinstance(value, date):
        return local_midnight(value, tz)
    raise InvalidDateTimeError(str(value), f"Expected a DATE or DATE-TIME value, got {value!r}")


def serialize_datetime_utc(dt: datetime) -> str:
    """Serialize datetime to ISO 8601 UTC string with Z suffix.

    Examples:
        >>> from datetime import datetime, timezone
        >>> serialize_datetime_utc(datetime(2025, 6, 16, 7, 0, tzinfo=timezone.utc))
        '2025-06-16T07:00:00Z'
    """
    if dt is None:
        raise ValueError("Cannot serialize None datetime")
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


def serialize_datetime_optional(dt: Optional[datetime]) -> Optional[str]:
    """Serialize an optional datetime, passing None through."""
    return serialize_datetime_utc(dt) if dt is not None else None


def format_clock_time(dt: datetime, tz: tzinfo) -> str:
    """Format dt as 24-hour ``HH:MM`` in the given timezone."""
    return dt.astimezone(tz).strftime("%H:%M")
