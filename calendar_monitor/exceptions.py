"""Exception hierarchy for calendar aggregation errors.

Every failure raised by the read/parse/expand pipeline derives from
CalendarMonitorError so the aggregator can contain it to the single source
or definition that produced it.
"""

from typing import Optional


class CalendarMonitorError(Exception):
    """Base exception for all calendar_monitor errors."""


class SourceUnavailableError(CalendarMonitorError):
    """A calendar source could not be read.

    Raised when:
    - A local ICS file does not exist or cannot be decoded
    - A remote ICS URL returns a non-success status
    - The network connection fails

    The aggregator treats the source as having contributed zero events.
    """

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.reason = message


class SourceTimeoutError(SourceUnavailableError):
    """Reading a source exceeded its time bound."""


class RemoteCalendarError(SourceUnavailableError):
    """The remote calendar API rejected or failed a request."""

    def __init__(self, source: str, message: str, status_code: Optional[int] = None):
        super().__init__(source, message)
        self.status_code = status_code


class CalendarParseError(CalendarMonitorError):
    """Calendar text (or one event definition within it) is malformed."""


class InvalidDateTimeError(CalendarParseError, ValueError):
    """A datetime value is in none of the accepted DATE or DATE-TIME forms."""

    def __init__(self, value: str, message: Optional[str] = None):
        super().__init__(message or f"Unrecognized datetime format: {value!r}")
        self.value = value


class InvalidEventError(CalendarParseError):
    """An event definition is structurally invalid (e.g. DTSTART after DTEND)."""
