"""Unit tests for calendar_monitor.models."""

from datetime import UTC, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from calendar_monitor.models import (
    CalendarEvent,
    CalendarSource,
    EventStatus,
    RawEventDefinition,
    event_status,
    is_time_block_title,
)

pytestmark = pytest.mark.unit

START = datetime(2025, 6, 16, 7, 0, tzinfo=UTC)
END = START + timedelta(minutes=30)


def make_event(title: str = "Standup", start: datetime = START, end: datetime = END, **kwargs):
    return CalendarEvent(title=title, start_time=start, end_time=end, **kwargs)


class TestEventStatus:
    def test_boundaries(self):
        assert event_status(START, END, START - timedelta(seconds=1)) is EventStatus.UPCOMING
        assert event_status(START, END, START) is EventStatus.IN_PROGRESS
        assert event_status(START, END, END) is EventStatus.IN_PROGRESS
        assert event_status(START, END, END + timedelta(seconds=1)) is EventStatus.ENDED

    def test_status_is_monotonic_in_now(self):
        order = [EventStatus.UPCOMING, EventStatus.IN_PROGRESS, EventStatus.ENDED]
        event = make_event()
        seen = [
            order.index(event.status(START + timedelta(minutes=m))) for m in range(-10, 45, 1)
        ]
        assert seen == sorted(seen)

    def test_zero_length_event_is_in_progress_at_its_instant(self):
        event = make_event(end=START)
        assert event.status(START) is EventStatus.IN_PROGRESS
        assert event.has_ended(START + timedelta(microseconds=1))


class TestCalendarEvent:
    def test_defaults(self):
        event = make_event()
        assert event.description is None
        assert event.location is None
        assert event.attendees == ()

    def test_title_defaults_to_untitled(self):
        event = CalendarEvent(start_time=START, end_time=END)
        assert event.title == "Untitled Event"

    def test_times_are_normalized_to_utc(self):
        plus3 = timezone(timedelta(hours=3))
        event = make_event(
            start=datetime(2025, 6, 16, 10, tzinfo=plus3),
            end=datetime(2025, 6, 16, 11, tzinfo=plus3),
        )
        assert event.start_time == datetime(2025, 6, 16, 7, tzinfo=UTC)
        assert event.start_time.utcoffset() == timedelta(0)

    def test_start_after_end_is_rejected(self):
        with pytest.raises(ValidationError):
            make_event(start=END, end=START)

    def test_is_immutable(self):
        event = make_event()
        with pytest.raises(ValidationError):
            event.title = "Changed"

    def test_with_updates_returns_new_record(self):
        event = make_event()
        updated = event.with_updates(location="Room 1", attendees=("a@example.com",))
        assert updated is not event
        assert updated.location == "Room 1"
        assert updated.attendees == ("a@example.com",)
        assert event.location is None

    def test_with_updates_revalidates(self):
        with pytest.raises(ValidationError):
            make_event().with_updates(end_time=START - timedelta(minutes=1))

    def test_time_until_start_and_end(self):
        event = make_event()
        now = START + timedelta(minutes=15)
        assert event.time_until_start(now) == -900
        assert event.time_until_end(now) == 900

    def test_duration_minutes(self):
        assert make_event().duration_minutes == 30

    def test_format_time_remaining(self):
        event = make_event()
        assert event.format_time_remaining(START + timedelta(minutes=15)) == "15:00"
        assert event.format_time_remaining(START - timedelta(minutes=2)) == "02:00"
        assert event.format_time_remaining(END + timedelta(minutes=1)) == "00:00"

    def test_formatted_time_range(self):
        assert make_event().formatted_time_range(ZoneInfo("Europe/Istanbul")) == "10:00 - 10:30"

    def test_payload_shape(self):
        event = make_event(description="Daily sync", attendees=("a@example.com",))
        assert event.to_payload() == {
            "title": "Standup",
            "start_time": "2025-06-16T07:00:00Z",
            "end_time": "2025-06-16T07:30:00Z",
            "description": "Daily sync",
        }


class TestTimeBlocks:
    def test_bracketed_title_is_time_block(self):
        event = make_event(title="[Draft.dev]")
        assert event.is_time_block
        assert event.time_block_name == "Draft.dev"

    def test_plain_title_is_not_time_block(self):
        event = make_event(title="Draft.dev")
        assert not event.is_time_block
        assert event.time_block_name is None

    @pytest.mark.parametrize("title", ["[Focus", "Focus]", "[", "(Focus)", " [Focus]"])
    def test_unmatched_or_other_delimiters(self, title):
        assert not is_time_block_title(title)

    def test_empty_brackets(self):
        assert is_time_block_title("[]")
        assert make_event(title="[]").time_block_name == ""


class TestRawEventDefinition:
    def test_duration_and_recurrence(self):
        definition = RawEventDefinition(
            title="Sync", start=START, end=END, recurrence_rule="FREQ=WEEKLY"
        )
        assert definition.duration == timedelta(minutes=30)
        assert definition.is_recurring
        assert not RawEventDefinition(title="Sync", start=START, end=END).is_recurring


class TestCalendarSource:
    @pytest.mark.parametrize(
        ("location", "remote"),
        [
            ("https://example.com/cal.ics", True),
            ("HTTP://example.com/cal.ics", True),
            ("/var/calendars/work.ics", False),
            ("calendars/http.ics", False),
        ],
    )
    def test_is_remote_by_prefix(self, location, remote):
        assert CalendarSource(location=location).is_remote is remote

    def test_name_defaults_to_location(self):
        assert CalendarSource(location="/tmp/a.ics").name == "/tmp/a.ics"
        assert CalendarSource(location="/tmp/a.ics", name="work").name == "work"

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            CalendarSource(location="/tmp/a.ics", timeout_seconds=0)
