"""Unit tests for calendar_monitor.domain.snapshot_cache."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from calendar_monitor.domain.snapshot_cache import Snapshot, SnapshotCache
from calendar_monitor.models import CalendarEvent

pytestmark = pytest.mark.unit

NOW = datetime(2025, 6, 16, 7, 15, tzinfo=UTC)


def make_event(title: str = "Standup") -> CalendarEvent:
    return CalendarEvent(
        title=title,
        start_time=datetime(2025, 6, 16, 7, 0, tzinfo=UTC),
        end_time=datetime(2025, 6, 16, 7, 30, tzinfo=UTC),
    )


class TestSnapshot:
    def test_empty_snapshot_is_never_fresh(self):
        assert not Snapshot().is_fresh(NOW, 300)

    @pytest.mark.parametrize(
        ("age_seconds", "fresh"),
        [(0, True), (299, True), (300, False), (301, False), (-1, False)],
    )
    def test_freshness_bounds(self, age_seconds, fresh):
        snapshot = Snapshot(fetched_at=NOW)
        assert snapshot.is_fresh(NOW + timedelta(seconds=age_seconds), 300) is fresh


class TestSnapshotCache:
    def setup_method(self):
        self.aggregate = AsyncMock(return_value=[make_event()])

    @pytest.mark.asyncio
    async def test_first_call_aggregates(self):
        cache = SnapshotCache(self.aggregate, ttl_seconds=300)

        events = await cache.get_snapshot(NOW)

        assert isinstance(events, tuple)
        assert [e.title for e in events] == ["Standup"]
        self.aggregate.assert_awaited_once_with(NOW)
        assert cache.fetched_at == NOW

    @pytest.mark.asyncio
    async def test_calls_within_ttl_reuse_snapshot(self):
        cache = SnapshotCache(self.aggregate, ttl_seconds=300)

        first = await cache.get_snapshot(NOW)
        second = await cache.get_snapshot(NOW + timedelta(seconds=299))

        assert first is second
        assert self.aggregate.await_count == 1
        assert cache.fetched_at == NOW

    @pytest.mark.asyncio
    async def test_refreshes_after_ttl(self):
        cache = SnapshotCache(self.aggregate, ttl_seconds=300)
        later = NOW + timedelta(seconds=300)

        await cache.get_snapshot(NOW)
        self.aggregate.return_value = [make_event("Refreshed")]
        events = await cache.get_snapshot(later)

        assert [e.title for e in events] == ["Refreshed"]
        assert self.aggregate.await_count == 2
        assert cache.fetched_at == later

    @pytest.mark.asyncio
    async def test_clock_moving_backwards_refreshes(self):
        cache = SnapshotCache(self.aggregate, ttl_seconds=300)

        await cache.get_snapshot(NOW)
        await cache.get_snapshot(NOW - timedelta(seconds=1))

        assert self.aggregate.await_count == 2

    @pytest.mark.asyncio
    async def test_zero_ttl_always_refreshes(self):
        cache = SnapshotCache(self.aggregate, ttl_seconds=0)

        await cache.get_snapshot(NOW)
        await cache.get_snapshot(NOW)

        assert self.aggregate.await_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_rebuild(self):
        started = asyncio.Event()
        release = asyncio.Event()
        calls = []

        async def slow_aggregate(now):
            calls.append(now)
            started.set()
            await release.wait()
            return [make_event()]

        cache = SnapshotCache(slow_aggregate, ttl_seconds=300)
        tasks = [asyncio.create_task(cache.get_snapshot(NOW)) for _ in range(5)]
        await started.wait()
        release.set()
        results = await asyncio.gather(*tasks)

        assert len(calls) == 1
        assert all(result == results[0] for result in results)

    @pytest.mark.asyncio
    async def test_uses_clock_when_now_omitted(self):
        cache = SnapshotCache(self.aggregate, ttl_seconds=300, clock=lambda: NOW)

        await cache.get_snapshot()

        self.aggregate.assert_awaited_once_with(NOW)

    @pytest.mark.asyncio
    async def test_aggregate_errors_propagate_and_keep_old_snapshot(self):
        cache = SnapshotCache(self.aggregate, ttl_seconds=60)
        await cache.get_snapshot(NOW)

        self.aggregate.side_effect = RuntimeError("boom")
        with pytest.raises(RuntimeError):
            await cache.get_snapshot(NOW + timedelta(seconds=120))

        assert cache.peek().fetched_at == NOW
        assert len(cache.peek().events) == 1

    @pytest.mark.asyncio
    async def test_invalidate_forces_rebuild(self):
        cache = SnapshotCache(self.aggregate, ttl_seconds=300)

        await cache.get_snapshot(NOW)
        await cache.invalidate()

        assert cache.fetched_at is None
        await cache.get_snapshot(NOW)
        assert self.aggregate.await_count == 2

    @pytest.mark.asyncio
    async def test_stats(self):
        cache = SnapshotCache(self.aggregate, ttl_seconds=300)

        await cache.get_snapshot(NOW)
        await cache.get_snapshot(NOW)
        await cache.get_snapshot(NOW)
        await cache.invalidate()
        stats = cache.get_stats()

        assert stats["hits"] == 2
        assert stats["misses"] == 1
        assert stats["refreshes"] == 1
        assert stats["invalidations"] == 1
        assert stats["hit_rate"] == 66.67
        assert stats["event_count"] == 0
        assert stats["fetched_at"] is None
        assert stats["ttl_seconds"] == 300

    def test_stats_before_any_call(self):
        stats = SnapshotCache(self.aggregate).get_stats()
        assert stats["hit_rate"] == 0.0
        assert stats["ttl_seconds"] == 300
