"""ICS feed parsing into raw event definitions.

VEVENT blocks are buffered line by line and each one is handed to
``icalendar`` on its own, so a broken block only costs that one definition.
Properties are then read from the decoded component. A feed without a
VCALENDAR wrapper fails as a whole.
"""

import logging
from collections.abc import Iterator
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum
from typing import Any, Optional

from icalendar import Calendar, Component

from calendar_monitor.calendar.datetime_utils import ensure_utc, to_utc_instant
from calendar_monitor.core.timezone_utils import resolve_timezone
from calendar_monitor.exceptions import CalendarParseError, InvalidDateTimeError, InvalidEventError
from calendar_monitor.models import UNTITLED_EVENT, RawEventDefinition

logger = logging.getLogger(__name__)

VCALENDAR = "VCALENDAR"
VEVENT = "VEVENT"
BEGIN_VEVENT = f"BEGIN:{VEVENT}"
END_VEVENT = f"END:{VEVENT}"
PRODID = "-//calendar_monitor//ICS Feed Parser//EN"


class ICSProperty(str, Enum):
    """VEVENT properties understood by the parser. Anything else is ignored."""

    SUMMARY = "SUMMARY"
    DTSTART = "DTSTART"
    DTEND = "DTEND"
    DESCRIPTION = "DESCRIPTION"
    LOCATION = "LOCATION"
    RRULE = "RRULE"
    DURATION = "DURATION"
    EXDATE = "EXDATE"
    ATTENDEE = "ATTENDEE"


DATETIME_PROPERTIES = frozenset(
    prop.value for prop in (ICSProperty.DTSTART, ICSProperty.DTEND, ICSProperty.EXDATE)
)


class ICSFeedParser:
    """Parse raw ICS text into RawEventDefinition records.

    Naive local and date-only values are interpreted in ``default_timezone``
    unless the property carries a TZID parameter naming a known zone.
    """

    def __init__(self, default_timezone: tzinfo):
        self.default_timezone = default_timezone

    def parse(self, ics_text: str, source: Optional[str] = None) -> list[RawEventDefinition]:
        """Parse one feed.

        Args:
            ics_text: Raw calendar text
            source: Source name attached to each definition and used in log messages

        Returns:
            Raw definitions in document order

        Raises:
            CalendarParseError: If the text is not a VCALENDAR document
        """
        label = source or "<ics>"
        if not ics_text or f"BEGIN:{VCALENDAR}" not in ics_text.upper():
            raise CalendarParseError(f"{label}: missing BEGIN:{VCALENDAR}")

        definitions: list[RawEventDefinition] = []
        skipped = 0
        for block in _iter_event_blocks(ics_text, label):
            try:
                component = _load_event(block)
                definitions.append(self._build_definition(component, source))
            except CalendarParseError as e:
                logger.warning("%s: skipping event: %s", label, e)
                skipped += 1

        logger.debug(
            "%s: parsed %d event definitions (%d skipped)", label, len(definitions), skipped
        )
        return definitions

    def _build_definition(
        self, component: Component, source: Optional[str]
    ) -> RawEventDefinition:
        title = _text(component, ICSProperty.SUMMARY) or UNTITLED_EVENT
        _check_errors(component, title)

        dtstart = component.get(ICSProperty.DTSTART)
        if dtstart is None:
            raise CalendarParseError(f"event {title!r} without DTSTART")
        start = self._instant(dtstart)
        start_is_date = not isinstance(dtstart.dt, datetime)

        dtend = component.get(ICSProperty.DTEND)
        duration = component.get(ICSProperty.DURATION)
        if dtend is not None:
            end = self._instant(dtend)
        elif duration is not None:
            end = start + duration.dt
        elif start_is_date:
            end = start + timedelta(days=1)
        else:
            end = start

        if start > end:
            raise InvalidEventError(
                f"event {title!r} has DTSTART {start.isoformat()} after DTEND {end.isoformat()}"
            )

        exdates, exdate_days = self._exdates(component)
        rrule = _first(component.get(ICSProperty.RRULE))
        return RawEventDefinition(
            title=title,
            start=start,
            end=end,
            description=_text(component, ICSProperty.DESCRIPTION),
            location=_text(component, ICSProperty.LOCATION),
            recurrence_rule=rrule.to_ical().decode() if rrule is not None else None,
            exdates=exdates,
            exdate_days=exdate_days,
            attendees=_attendees(component),
            source=source,
        )

    def _instant(self, prop: Any) -> datetime:
        return self._to_utc(prop.dt, prop.params)

    def _to_utc(self, value: Any, params: Any) -> datetime:
        # icalendar already attached a zone for Z values and TZIDs it knows.
        if isinstance(value, datetime) and value.tzinfo is not None:
            return ensure_utc(value)
        return to_utc_instant(value, self._timezone_for(params))

    def _exdates(self, component: Component) -> tuple[tuple[datetime, ...], tuple[date, ...]]:
        instants: list[datetime] = []
        days: list[date] = []
        for exdate_list in _as_list(component.get(ICSProperty.EXDATE)):
            for item in exdate_list.dts:
                value = item.dt
                if isinstance(value, datetime):
                    instants.append(self._to_utc(value, exdate_list.params))
                elif isinstance(value, date):
                    days.append(value)
                else:
                    raise InvalidDateTimeError(str(value), f"Unsupported EXDATE value {value!r}")
        return tuple(instants), tuple(days)

    def _timezone_for(self, params: Any) -> tzinfo:
        tzid = params.get("TZID") if params else None
        if not tzid:
            return self.default_timezone
        tz = resolve_timezone(str(tzid))
        if tz is None:
            logger.warning("Unknown TZID %r, using configured timezone", tzid)
            return self.default_timezone
        return tz


def _iter_event_blocks(ics_text: str, label: str) -> Iterator[list[str]]:
    """Yield the raw lines of each top-level VEVENT, folding left intact."""
    current: Optional[list[str]] = None
    for line in ics_text.splitlines():
        marker = line.rstrip().upper()
        if marker == BEGIN_VEVENT:
            if current is not None:
                logger.warning("%s: unterminated VEVENT dropped", label)
            current = [line]
        elif current is not None:
            current.append(line)
            if marker == END_VEVENT:
                yield current
                current = None

    if current is not None:
        logger.warning("%s: unterminated VEVENT dropped", label)


def _load_event(lines: list[str]) -> Component:
    event_ics = "\n".join(
        [f"BEGIN:{VCALENDAR}", "VERSION:2.0", f"PRODID:{PRODID}", *lines, f"END:{VCALENDAR}"]
    )
    try:
        calendar = Calendar.from_ical(event_ics + "\n")
    except ValueError as e:
        raise CalendarParseError(f"unreadable VEVENT: {e}") from e

    events = calendar.walk(VEVENT)
    if not events:
        raise CalendarParseError("VEVENT block without content")
    return events[0]


def _check_errors(component: Component, title: str) -> None:
    """Reject a definition with any line or value icalendar could not decode."""
    if not component.errors:
        return
    name, message = component.errors[0]
    if name in DATETIME_PROPERTIES:
        raise InvalidDateTimeError(message, f"event {title!r}: invalid {name}: {message}")
    raise CalendarParseError(f"event {title!r}: malformed {name or 'line'}: {message}")


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _first(value: Any) -> Any:
    values = _as_list(value)
    return values[0] if values else None


def _text(component: Component, prop: ICSProperty) -> Optional[str]:
    value = _first(component.get(prop))
    return str(value) if value is not None else None


def _attendees(component: Component) -> tuple[str, ...]:
    names = (_attendee_name(a) for a in _as_list(component.get(ICSProperty.ATTENDEE)))
    return tuple(name for name in names if name)


def _attendee_name(attendee: Any) -> Optional[str]:
    """Prefer the CN parameter, otherwise the address without its mailto: scheme."""
    common_name = attendee.params.get("CN")
    if common_name:
        return str(common_name).strip() or None
    address = str(attendee).strip()
    if address.lower().startswith("mailto:"):
        address = address[len("mailto:") :]
    return address or None
