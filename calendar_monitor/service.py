"""Service facade wiring sources, cache and status engine together.

The transport layer (WebSocket/HTTP server, display loop) owns one
CalendarMonitorService and calls ``get_update`` on every tick.
"""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Any, Optional

from calendar_monitor.calendar.fetcher import ICSSourceReader
from calendar_monitor.calendar.google_calendar import GoogleCalendarClient, RemoteCalendarClient
from calendar_monitor.core.config_manager import MonitorConfig
from calendar_monitor.core.timezone_utils import now_utc
from calendar_monitor.domain.aggregator import CalendarAggregator
from calendar_monitor.domain.snapshot_cache import SnapshotCache
from calendar_monitor.domain.status_calculator import MeetingStatusReport, compute_status
from calendar_monitor.models import CalendarEvent

logger = logging.getLogger(__name__)


class CalendarMonitorService:
    """High-level queries over the cached event snapshot."""

    def __init__(
        self,
        cache: SnapshotCache,
        timezone: tzinfo,
        aggregator: Optional[CalendarAggregator] = None,
    ):
        self.cache = cache
        self.timezone = timezone
        self.aggregator = aggregator

    @classmethod
    def from_config(
        cls,
        config: MonitorConfig,
        reader: Optional[ICSSourceReader] = None,
        remote_clients: Optional[list[RemoteCalendarClient]] = None,
    ) -> CalendarMonitorService:
        """Build the full aggregator/cache stack from configuration.

        A Google calendar client is added when an access token is configured
        and ``remote_clients`` is not given explicitly.
        """
        tz = config.tzinfo
        if remote_clients is None:
            remote_clients = []
            if config.google_access_token:
                remote_clients.append(
                    GoogleCalendarClient(
                        config.google_access_token,
                        calendar_id=config.google_calendar_id,
                        timeout_seconds=config.source_timeout_seconds,
                    )
                )

        aggregator = CalendarAggregator(
            config.calendar_sources(),
            tz,
            reader=reader,
            remote_clients=remote_clients,
        )
        cache = SnapshotCache(aggregator.aggregate, ttl_seconds=config.cache_ttl_seconds)
        logger.info(
            "Calendar monitor configured: %d ICS source(s), %d remote source(s), ttl=%ss, tz=%s",
            len(aggregator.sources),
            len(aggregator.remote_clients),
            config.cache_ttl_seconds,
            config.timezone,
        )
        return cls(cache, tz, aggregator=aggregator)

    async def get_status(self, now: Optional[datetime] = None) -> MeetingStatusReport:
        now = now or now_utc()
        events = await self.cache.get_snapshot(now)
        return compute_status(events, now)

    async def get_update(self, now: Optional[datetime] = None) -> dict[str, Any]:
        """Return the ``MeetingUpdate`` payload for one tick."""
        report = await self.get_status(now)
        return report.to_payload()

    async def get_current_and_next_meetings(
        self, now: Optional[datetime] = None
    ) -> tuple[Optional[CalendarEvent], Optional[CalendarEvent]]:
        report = await self.get_status(now)
        return report.current, report.next

    async def get_active_time_blocks(self, now: Optional[datetime] = None) -> list[CalendarEvent]:
        report = await self.get_status(now)
        return list(report.active_time_blocks)

    async def get_meetings_for_today(self, now: Optional[datetime] = None) -> list[CalendarEvent]:
        """Events that start on the local calendar day containing ``now``."""
        now = now or now_utc()
        events = await self.cache.get_snapshot(now)
        today = now.astimezone(self.timezone).date()
        return [
            event for event in events if event.start_time.astimezone(self.timezone).date() == today
        ]

