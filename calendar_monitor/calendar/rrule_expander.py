"""Weekly recurrence expansion over the today+tomorrow lookahead window.

Only ``FREQ=WEEKLY`` rules are expanded (with optional ``INTERVAL``, ``BYDAY``,
``COUNT`` and ``UNTIL``). Definitions without a rule, or with any other
frequency, produce a single occurrence.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional

from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule, rruleset

from calendar_monitor.calendar.datetime_utils import DATE_FORMAT, local_midnight, localize
from calendar_monitor.exceptions import CalendarParseError, InvalidDateTimeError
from calendar_monitor.models import CalendarEvent, RawEventDefinition

logger = logging.getLogger(__name__)

LOOKAHEAD_DAYS = 2

WEEKDAY_CODES = {
    "MO": MO,
    "TU": TU,
    "WE": WE,
    "TH": TH,
    "FR": FR,
    "SA": SA,
    "SU": SU,
}


@dataclass(frozen=True)
class LookaheadWindow:
    """Half-open UTC interval ``[start, end)``."""

    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """True if [start, end] intersects the window.

        Zero-length events count when their instant lies inside the window.
        """
        if start >= self.end:
            return False
        return end > self.start or start >= self.start


def compute_lookahead_window(now: datetime, tz: tzinfo) -> LookaheadWindow:
    """Window from local midnight today to local midnight the day after tomorrow."""
    today = now.astimezone(tz).date()
    return LookaheadWindow(
        start=local_midnight(today, tz),
        end=local_midnight(today + timedelta(days=LOOKAHEAD_DAYS), tz),
    )


@dataclass(frozen=True)
class RecurrenceRule:
    """The subset of an RRULE this module understands."""

    freq: str
    interval: int = 1
    byday: tuple[str, ...] = ()
    until: Optional[date] = None
    count: Optional[int] = None

    @property
    def is_weekly(self) -> bool:
        return self.freq == "WEEKLY"


def parse_rrule_until(value: str) -> date:
    """Return the calendar date of an UNTIL value, ignoring its time of day.

    >>> parse_rrule_until("20250620T235959Z")
    datetime.date(2025, 6, 20)
    """
    text = (value or "").strip()
    try:
        return datetime.strptime(text[:8], DATE_FORMAT).date()
    except ValueError as e:
        raise InvalidDateTimeError(text, f"Invalid UNTIL value {text!r}") from e


def parse_rrule(rrule_string: str) -> RecurrenceRule:
    """Parse an RRULE string into a RecurrenceRule.

    Args:
        rrule_string: RRULE value (e.g. "FREQ=WEEKLY;BYDAY=MO,WE;UNTIL=20250620T235959Z")

    Raises:
        CalendarParseError: If the rule is empty, lacks FREQ, or has malformed parts
    """
    if not rrule_string or not rrule_string.strip():
        raise CalendarParseError("Empty RRULE string")

    text = rrule_string.strip()
    if text.upper().startswith("RRULE:"):
        text = text[len("RRULE:") :]

    freq: Optional[str] = None
    interval = 1
    byday: tuple[str, ...] = ()
    until: Optional[date] = None
    count: Optional[int] = None

    try:
        for part in text.split(";"):
            if "=" not in part:
                continue
            key, value = part.split("=", 1)
            key = key.strip().upper()
            value = value.strip()

            if key == "FREQ":
                freq = value.upper()
            elif key == "INTERVAL":
                interval = int(value)
            elif key == "BYDAY":
                byday = tuple(day.strip().upper() for day in value.split(",") if day.strip())
            elif key == "UNTIL":
                until = parse_rrule_until(value)
            elif key == "COUNT":
                count = int(value)
    except ValueError as e:
        raise CalendarParseError(f"Invalid RRULE format: {rrule_string}") from e

    if not freq:
        raise CalendarParseError(f"RRULE missing required FREQ parameter: {rrule_string}")
    if interval < 1:
        raise CalendarParseError(f"RRULE INTERVAL must be positive: {rrule_string}")

    return RecurrenceRule(freq=freq, interval=interval, byday=byday, until=until, count=count)


class RecurrenceExpander:
    """Turn raw definitions into concrete CalendarEvent occurrences.

    Weekly occurrences keep the definition's local wall-clock start time in
    ``timezone``, so a 10:00 meeting stays at 10:00 across DST changes.
    """

    def __init__(self, timezone: tzinfo):
        self.timezone = timezone

    def expand(
        self, definition: RawEventDefinition, window: LookaheadWindow
    ) -> list[CalendarEvent]:
        """Expand one definition.

        Non-recurring definitions yield exactly one occurrence regardless of
        the window; the aggregator applies the window filter to those.

        Raises:
            CalendarParseError: If the recurrence rule is malformed
        """
        if not definition.recurrence_rule:
            return [self._occurrence(definition, definition.start)]

        rule = parse_rrule(definition.recurrence_rule)
        if not rule.is_weekly:
            logger.debug(
                "Unsupported FREQ=%s for %r, treating as single occurrence",
                rule.freq,
                definition.title,
            )
            return [self._occurrence(definition, definition.start)]

        return self._expand_weekly(definition, rule, window)

    def _expand_weekly(
        self, definition: RawEventDefinition, rule: RecurrenceRule, window: LookaheadWindow
    ) -> list[CalendarEvent]:
        try:
            byweekday = [WEEKDAY_CODES[code[-2:]] for code in rule.byday] or None
        except KeyError as e:
            raise CalendarParseError(f"Invalid BYDAY in RRULE: {definition.recurrence_rule}") from e

        local_start = self._to_naive_local(definition.start)
        rule_set = rruleset()
        rule_set.rrule(
            rrule(
                WEEKLY,
                dtstart=local_start,
                interval=rule.interval,
                byweekday=byweekday,
                count=rule.count,
            )
        )
        for exdate in definition.exdates:
            rule_set.exdate(self._to_naive_local(exdate))
        # Date-valued EXDATEs cancel the occurrence on that local day.
        for day in definition.exdate_days:
            rule_set.exdate(datetime.combine(day, local_start.time()))

        # Pad the local search range by a day on each side; the exact cut is
        # made below on the UTC start.
        search_from = self._to_naive_local(window.start) - timedelta(days=1)
        search_to = self._to_naive_local(window.end) + timedelta(days=1)

        occurrences = []
        for naive_start in rule_set.between(search_from, search_to, inc=True):
            start = localize(naive_start, self.timezone)
            # UNTIL is a UTC value, so the cutoff is on the UTC date.
            if rule.until is not None and start.date() > rule.until:
                continue
            if not window.contains(start):
                continue
            occurrences.append(self._occurrence(definition, start))

        logger.debug(
            "Expanded %r into %d occurrence(s) within window", definition.title, len(occurrences)
        )
        return occurrences

    def _to_naive_local(self, instant: datetime) -> datetime:
        return instant.astimezone(self.timezone).replace(tzinfo=None)

    @staticmethod
    def _occurrence(definition: RawEventDefinition, start: datetime) -> CalendarEvent:
        return CalendarEvent(
            title=definition.title,
            start_time=start,
            end_time=start + definition.duration,
            description=definition.description,
            location=definition.location,
            attendees=definition.attendees,
        )
