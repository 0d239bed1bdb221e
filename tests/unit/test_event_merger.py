"""Unit tests for calendar_monitor.calendar.event_merger."""

from datetime import UTC, datetime, timedelta

import pytest

from calendar_monitor.calendar.event_merger import EventMerger
from calendar_monitor.models import CalendarEvent

pytestmark = pytest.mark.unit

T = datetime(2025, 6, 16, 7, 0, tzinfo=UTC)


def create_test_event(title: str, start: datetime, minutes: int, **kwargs) -> CalendarEvent:
    return CalendarEvent(
        title=title, start_time=start, end_time=start + timedelta(minutes=minutes), **kwargs
    )


class TestEventMerger:
    """Tests for EventMerger class."""

    def setup_method(self):
        self.merger = EventMerger()

    def test_duplicate_with_later_end_wins(self):
        short = create_test_event("Sync", T, 30)
        extended = create_test_event("Sync", T, 45)
        result = self.merger.deduplicate_events([short, extended])
        assert result == [extended]

    def test_duplicate_order_does_not_matter(self):
        short = create_test_event("Sync", T, 30)
        extended = create_test_event("Sync", T, 45)
        assert self.merger.deduplicate_events([extended, short]) == [extended]

    def test_same_title_different_start_kept(self):
        first = create_test_event("Sync", T, 30)
        second = create_test_event("Sync", T + timedelta(hours=1), 30)
        assert len(self.merger.deduplicate_events([first, second])) == 2

    def test_different_title_same_start_kept(self):
        a = create_test_event("Sync", T, 30)
        b = create_test_event("Review", T, 30)
        assert len(self.merger.deduplicate_events([a, b])) == 2

    def test_equal_duplicates_keep_first_seen(self):
        first = create_test_event("Sync", T, 30, location="Room 1")
        second = create_test_event("Sync", T, 30, location="Room 2")
        [kept] = self.merger.deduplicate_events([first, second])
        assert kept.location == "Room 1"

    def test_sort_by_start_then_end(self):
        long = create_test_event("Long", T, 60)
        short = create_test_event("Short", T, 15)
        early = create_test_event("Early", T - timedelta(hours=1), 120)
        assert self.merger.sort_events([long, short, early]) == [early, short, long]

    def test_merge_across_sources(self):
        source_a = [
            create_test_event("Sync", T, 30),
            create_test_event("Lunch", T + timedelta(hours=5), 60),
        ]
        source_b = [
            create_test_event("Sync", T, 45),
            create_test_event("Focus", T - timedelta(hours=2), 90),
        ]
        merged = self.merger.merge([source_a, source_b])
        assert [(e.title, e.duration_minutes) for e in merged] == [
            ("Focus", 90),
            ("Sync", 45),
            ("Lunch", 60),
        ]

    def test_merge_empty(self):
        assert self.merger.merge([]) == []
        assert self.merger.merge([[], []]) == []
