"""Timezone resolution and clock utilities for calendar_monitor."""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo
from functools import lru_cache
from typing import ClassVar, Optional

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"
TEST_TIME_ENV_VAR = "CALENDAR_MONITOR_TEST_TIME"


class TimezoneNames:
    """Lookup tables for non-IANA timezone names found in ICS feeds."""

    # Windows timezone names emitted by Outlook/Exchange in TZID parameters
    WINDOWS_TZ_MAP: ClassVar[dict[str, str]] = {
        "Pacific Standard Time": "America/Los_Angeles",
        "Mountain Standard Time": "America/Denver",
        "Central Standard Time": "America/Chicago",
        "Eastern Standard Time": "America/New_York",
        "Alaskan Standard Time": "America/Anchorage",
        "Hawaiian Standard Time": "Pacific/Honolulu",
        "US Mountain Standard Time": "America/Phoenix",
        "Atlantic Standard Time": "America/Halifax",
        "GMT Standard Time": "Europe/London",
        "W. Europe Standard Time": "Europe/Berlin",
        "Central European Standard Time": "Europe/Warsaw",
        "Central Europe Standard Time": "Europe/Budapest",
        "Romance Standard Time": "Europe/Paris",
        "E. Europe Standard Time": "Europe/Bucharest",
        "FLE Standard Time": "Europe/Helsinki",
        "GTB Standard Time": "Europe/Athens",
        "Turkey Standard Time": "Europe/Istanbul",
        "Russian Standard Time": "Europe/Moscow",
        "Israel Standard Time": "Asia/Jerusalem",
        "Arabian Standard Time": "Asia/Dubai",
        "India Standard Time": "Asia/Kolkata",
        "China Standard Time": "Asia/Shanghai",
        "Singapore Standard Time": "Asia/Singapore",
        "Tokyo Standard Time": "Asia/Tokyo",
        "Korea Standard Time": "Asia/Seoul",
        "AUS Eastern Standard Time": "Australia/Sydney",
        "New Zealand Standard Time": "Pacific/Auckland",
        "E. South America Standard Time": "America/Sao_Paulo",
        "South Africa Standard Time": "Africa/Johannesburg",
        "UTC": "UTC",
    }

    # Obsolete or alternate spellings mapped to canonical identifiers
    TZ_ALIAS_MAP: ClassVar[dict[str, str]] = {
        "US/Pacific": "America/Los_Angeles",
        "US/Mountain": "America/Denver",
        "US/Central": "America/Chicago",
        "US/Eastern": "America/New_York",
        "US/Alaska": "America/Anchorage",
        "US/Hawaii": "Pacific/Honolulu",
        "US/Arizona": "America/Phoenix",
        "GMT": "UTC",
        "Etc/UTC": "UTC",
        "Etc/GMT": "UTC",
        "Universal": "UTC",
        "Zulu": "UTC",
        "Z": "UTC",
        "Asia/Rangoon": "Asia/Yangon",
    }


def windows_tz_to_iana(windows_tz: str) -> Optional[str]:
    """Convert a Windows timezone name to its IANA identifier, if known."""
    return TimezoneNames.WINDOWS_TZ_MAP.get(windows_tz)


def resolve_timezone_alias(tz_name: str) -> str:
    """Resolve an alias to its canonical IANA identifier.

    Examples:
        >>> resolve_timezone_alias("US/Pacific")
        'America/Los_Angeles'
        >>> resolve_timezone_alias("Europe/Istanbul")
        'Europe/Istanbul'
    """
    return TimezoneNames.TZ_ALIAS_MAP.get(tz_name, tz_name)


def normalize_timezone_name(tz_str: Optional[str]) -> Optional[str]:
    """Normalize a timezone string (Windows name, alias or IANA) to an IANA identifier.

    Returns None when the name cannot be resolved to a zone that zoneinfo knows.
    """
    if not tz_str or not tz_str.strip():
        return None

    candidate = tz_str.strip().strip('"')
    candidate = windows_tz_to_iana(candidate) or resolve_timezone_alias(candidate)
    if candidate == "UTC":
        return candidate

    try:
        zoneinfo.ZoneInfo(candidate)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.debug("Unknown timezone name %r", tz_str)
        return None
    return candidate


@lru_cache(maxsize=64)
def resolve_timezone(tz_str: Optional[str]) -> Optional[datetime.tzinfo]:
    """Return a tzinfo for the given name, or None when it cannot be resolved."""
    name = normalize_timezone_name(tz_str)
    if name is None:
        return None
    if name == "UTC":
        return datetime.UTC
    return zoneinfo.ZoneInfo(name)


def get_timezone(tz_str: Optional[str], fallback: str = DEFAULT_TIMEZONE) -> datetime.tzinfo:
    """Resolve a configured timezone name, falling back (with a warning) when invalid."""
    tz = resolve_timezone(tz_str)
    if tz is not None:
        return tz
    if tz_str:
        logger.warning("Invalid timezone %r, falling back to %s", tz_str, fallback)
    return resolve_timezone(fallback) or datetime.UTC


def now_utc() -> datetime.datetime:
    """Return the current UTC time with tzinfo.

    Can be pinned for manual testing via the CALENDAR_MONITOR_TEST_TIME environment
    variable (ISO 8601, e.g. "2025-06-16T10:15:00+03:00"). Naive values are taken as UTC.
    """
    test_time = os.environ.get(TEST_TIME_ENV_VAR)
    if test_time:
        try:
            dt = datetime.datetime.fromisoformat(test_time)
        except ValueError as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV_VAR, test_time, e)
        else:
            if dt.tzinfo is None:
                return dt.replace(tzinfo=datetime.UTC)
            return dt.astimezone(datetime.UTC)

    return datetime.datetime.now(datetime.UTC)
