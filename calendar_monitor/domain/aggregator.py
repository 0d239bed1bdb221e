"""Aggregation of all configured calendar sources into one event list."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, tzinfo
from typing import Optional

from calendar_monitor.calendar.event_merger import EventMerger
from calendar_monitor.calendar.fetcher import ICSSourceReader
from calendar_monitor.calendar.google_calendar import RemoteCalendarClient
from calendar_monitor.calendar.ics_parser import ICSFeedParser
from calendar_monitor.calendar.rrule_expander import (
    LookaheadWindow,
    RecurrenceExpander,
    compute_lookahead_window,
)
from calendar_monitor.core.timezone_utils import now_utc
from calendar_monitor.exceptions import CalendarMonitorError, CalendarParseError
from calendar_monitor.models import CalendarEvent, CalendarSource, RawEventDefinition

logger = logging.getLogger(__name__)

DEFAULT_FETCH_CONCURRENCY = 3


class CalendarAggregator:
    """Read, parse and expand every source, then merge into one sorted list.

    Each source is processed independently; a failing source is logged and
    contributes nothing. ``aggregate`` never raises for source problems and
    returns an empty list when there are no sources or all of them fail.
    """

    def __init__(
        self,
        sources: Sequence[CalendarSource],
        timezone: tzinfo,
        reader: Optional[ICSSourceReader] = None,
        remote_clients: Iterable[RemoteCalendarClient] = (),
        fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY,
    ):
        self.sources = list(sources)
        self.timezone = timezone
        self.reader = reader or ICSSourceReader()
        self.remote_clients = list(remote_clients)
        self.fetch_concurrency = max(1, fetch_concurrency)
        self.parser = ICSFeedParser(timezone)
        self.expander = RecurrenceExpander(timezone)
        self.merger = EventMerger()

    async def aggregate(self, now: Optional[datetime] = None) -> list[CalendarEvent]:
        """Build the merged event list for the lookahead window around ``now``."""
        if not self.sources and not self.remote_clients:
            logger.debug("No calendar sources configured")
            return []

        window = compute_lookahead_window(now or now_utc(), self.timezone)
        semaphore = asyncio.Semaphore(self.fetch_concurrency)

        labels = [source.name for source in self.sources]
        tasks = [self._collect_ics_source(semaphore, source, window) for source in self.sources]
        for client in self.remote_clients:
            labels.append(client.name)
            tasks.append(self._collect_remote_source(semaphore, client, window))

        results = await asyncio.gather(*tasks, return_exceptions=True)

        per_source: list[list[CalendarEvent]] = []
        failed = 0
        for label, result in zip(labels, results):
            if isinstance(result, CalendarMonitorError):
                failed += 1
                logger.warning("Source %s contributed no events: %s", label, result)
                continue
            if isinstance(result, Exception):
                failed += 1
                logger.error("Source %s failed unexpectedly", label, exc_info=result)
                continue
            if isinstance(result, BaseException):
                raise result
            logger.debug("Source %s contributed %d events", label, len(result))
            per_source.append(result)

        if failed == len(labels):
            logger.warning("All %d calendar sources failed", failed)

        events = self.merger.merge(per_source)
        logger.debug(
            "Aggregated %d events from %d/%d sources",
            len(events),
            len(labels) - failed,
            len(labels),
        )
        return events

    async def _collect_ics_source(
        self, semaphore: asyncio.Semaphore, source: CalendarSource, window: LookaheadWindow
    ) -> list[CalendarEvent]:
        async with semaphore:
            text = await self.reader.read(source)
        definitions = self.parser.parse(text, source=source.name)
        return self._expand_definitions(definitions, window, source.name)

    async def _collect_remote_source(
        self, semaphore: asyncio.Semaphore, client: RemoteCalendarClient, window: LookaheadWindow
    ) -> list[CalendarEvent]:
        async with semaphore:
            definitions = await client.fetch_definitions(window)
        return self._expand_definitions(definitions, window, client.name)

    def _expand_definitions(
        self, definitions: Iterable[RawEventDefinition], window: LookaheadWindow, label: str
    ) -> list[CalendarEvent]:
        events: list[CalendarEvent] = []
        for definition in definitions:
            try:
                occurrences = self.expander.expand(definition, window)
            except (CalendarParseError, ValueError) as e:
                logger.warning("%s: skipping event %r: %s", label, definition.title, e)
                continue
            events.extend(
                event for event in occurrences if window.overlaps(event.start_time, event.end_time)
            )
        return events
