"""TTL cache for the aggregated event snapshot.

One SnapshotCache is created per process and handed to everything that
needs events. The lock is held across the freshness check, the rebuild and
the store, so concurrent callers during a miss wait for the single
in-flight rebuild and never see a half-updated snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from calendar_monitor.core.timezone_utils import now_utc
from calendar_monitor.models import CalendarEvent

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300

AggregateFn = Callable[[datetime], Awaitable[Sequence[CalendarEvent]]]


@dataclass(frozen=True)
class Snapshot:
    """Aggregated, sorted events plus the instant they were fetched."""

    events: tuple[CalendarEvent, ...] = ()
    fetched_at: Optional[datetime] = None

    def is_fresh(self, now: datetime, ttl_seconds: float) -> bool:
        if self.fetched_at is None:
            return False
        age = (now - self.fetched_at).total_seconds()
        # A clock that moved backwards counts as stale.
        return 0 <= age < ttl_seconds


class SnapshotCache:
    """Memoize an aggregate function for ``ttl_seconds``.

    Example:
        cache = SnapshotCache(aggregator.aggregate, ttl_seconds=300)
        events = await cache.get_snapshot()
    """

    def __init__(
        self,
        aggregate: AggregateFn,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._aggregate = aggregate
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot = Snapshot()
        self._lock = asyncio.Lock()
        self.stats = {
            "hits": 0,
            "misses": 0,
            "refreshes": 0,
            "invalidations": 0,
        }

    @property
    def fetched_at(self) -> Optional[datetime]:
        return self._snapshot.fetched_at

    def peek(self) -> Snapshot:
        """Return the current snapshot without refreshing it."""
        return self._snapshot

    async def get_snapshot(self, now: Optional[datetime] = None) -> tuple[CalendarEvent, ...]:
        """Return cached events, rebuilding them first if the snapshot is stale.

        Args:
            now: Current instant; defaults to the cache's clock

        Returns:
            Immutable, chronologically sorted events
        """
        now = now or self._clock()
        async with self._lock:
            if self._snapshot.is_fresh(now, self.ttl_seconds):
                self.stats["hits"] += 1
                return self._snapshot.events

            self.stats["misses"] += 1
            events = tuple(await self._aggregate(now))
            self._snapshot = Snapshot(events=events, fetched_at=now)
            self.stats["refreshes"] += 1
            logger.info("Snapshot refreshed: %d events", len(events))
            return events

    async def invalidate(self) -> None:
        """Drop the cached snapshot so the next call rebuilds it."""
        async with self._lock:
            self._snapshot = Snapshot()
            self.stats["invalidations"] += 1
        logger.debug("Snapshot invalidated")

    def get_stats(self) -> dict[str, Any]:
        total = self.stats["hits"] + self.stats["misses"]
        return {
            **self.stats,
            "hit_rate": round(self.stats["hits"] / total * 100, 2) if total else 0.0,
            "event_count": len(self._snapshot.events),
            "fetched_at": self._snapshot.fetched_at.isoformat() if self._snapshot.fetched_at else None,
            "ttl_seconds": self.ttl_seconds,
        }
