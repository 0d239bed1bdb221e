"""Event merging, deduplication and ordering across calendar sources."""

import logging
from collections.abc import Iterable

from calendar_monitor.models import CalendarEvent

logger = logging.getLogger(__name__)


class EventMerger:
    """Combine per-source event lists into one chronological, de-duplicated list."""

    def merge(self, event_lists: Iterable[Iterable[CalendarEvent]]) -> list[CalendarEvent]:
        """Concatenate, deduplicate and sort events from several sources."""
        combined = [event for events in event_lists for event in events]
        merged = self.sort_events(self.deduplicate_events(combined))
        logger.debug("Merged %d events into %d", len(combined), len(merged))
        return merged

    def deduplicate_events(self, events: list[CalendarEvent]) -> list[CalendarEvent]:
        """Remove duplicates keyed by (title, start_time).

        When two events share a key the one ending later wins. First-seen
        order is kept for the surviving keys.

        Args:
            events: Events from any number of sources

        Returns:
            Events with duplicates removed
        """
        kept: dict[tuple[str, object], CalendarEvent] = {}
        for event in events:
            key = (event.title, event.start_time)
            existing = kept.get(key)
            if existing is None or event.end_time > existing.end_time:
                kept[key] = event

        removed = len(events) - len(kept)
        if removed:
            logger.debug("Removed %d duplicate events", removed)
        return list(kept.values())

    @staticmethod
    def sort_events(events: list[CalendarEvent]) -> list[CalendarEvent]:
        """Sort ascending by start, ties broken by end."""
        return sorted(events, key=lambda e: (e.start_time, e.end_time))
