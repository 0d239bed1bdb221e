"""Current/next meeting status and countdown formatting.

``compute_status`` is the single place that decides which event is current,
which is next and which time blocks are active. The formatting helpers are
pure functions shared by the status report and the event model.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Any, Optional

from calendar_monitor.models import CalendarEvent, EventStatus

URGENT_THRESHOLD_SECONDS = 300
STARTING_NOW = "Starting now"


@dataclass(frozen=True)
class MeetingStatusReport:
    """Derived display facts for one point in time."""

    current: Optional[CalendarEvent]
    next: Optional[CalendarEvent]
    countdown_seconds: Optional[int]
    active_time_blocks: tuple[CalendarEvent, ...] = field(default_factory=tuple)
    time_until_next_seconds: Optional[int] = None

    @property
    def is_urgent(self) -> bool:
        """True while the current meeting has five minutes or less remaining."""
        return (
            self.countdown_seconds is not None
            and 0 < self.countdown_seconds <= URGENT_THRESHOLD_SECONDS
        )

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the ``MeetingUpdate`` wire shape."""
        return {
            "current_meeting": self.current.to_payload() if self.current else None,
            "next_meeting": self.next.to_payload() if self.next else None,
            "countdown_seconds": self.countdown_seconds,
            "active_time_blocks": [block.to_payload() for block in self.active_time_blocks],
        }


def partition_time_blocks(
    events: Iterable[CalendarEvent],
) -> tuple[list[CalendarEvent], list[CalendarEvent]]:
    """Split events into (regular events, time blocks), keeping order."""
    regular: list[CalendarEvent] = []
    blocks: list[CalendarEvent] = []
    for event in events:
        (blocks if event.is_time_block else regular).append(event)
    return regular, blocks


def compute_status(events: Iterable[CalendarEvent], now: datetime) -> MeetingStatusReport:
    """Derive current meeting, next meeting and active time blocks.

    Args:
        events: Events sorted by (start_time, end_time)
        now: Current instant (timezone-aware)

    Returns:
        MeetingStatusReport; countdown is seconds until the current meeting ends
    """
    regular, blocks = partition_time_blocks(events)

    current: Optional[CalendarEvent] = None
    upcoming: Optional[CalendarEvent] = None
    for event in regular:
        status = event.status(now)
        if current is None and status is EventStatus.IN_PROGRESS:
            current = event
        elif upcoming is None and status is EventStatus.UPCOMING:
            upcoming = event
        if current is not None and upcoming is not None:
            break

    active_blocks = tuple(block for block in blocks if block.is_active(now))

    return MeetingStatusReport(
        current=current,
        next=upcoming,
        countdown_seconds=current.time_until_end(now) if current else None,
        active_time_blocks=active_blocks,
        time_until_next_seconds=upcoming.time_until_start(now) if upcoming else None,
    )


def format_countdown(seconds: int) -> str:
    """Render seconds as ``HH:MM:SS`` when an hour or more remains, else ``MM:SS``.

    >>> format_countdown(900)
    '15:00'
    >>> format_countdown(3725)
    '01:02:05'
    >>> format_countdown(-5)
    '00:00'
    """
    if seconds <= 0:
        return "00:00"
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_duration(duration: timedelta) -> str:
    """Render a duration as ``Nh Mm`` from one hour upwards, else ``Nm``."""
    minutes = max(0, int(duration.total_seconds() // 60))
    if minutes >= 60:
        hours, remaining = divmod(minutes, 60)
        return f"{hours}h {remaining}m"
    return f"{minutes}m"


def describe_time_until_start(event: CalendarEvent, now: datetime) -> str:
    seconds = event.time_until_start(now)
    if seconds <= 0:
        return STARTING_NOW
    return format_countdown(seconds)


def format_meeting_date(start: datetime, now: datetime, tz: tzinfo) -> str:
    """Describe which local day a meeting falls on, relative to now.

    Returns "Today", "Tomorrow", the weekday with date for the coming week
    (e.g. "Friday, Jun 20"), or a full date for anything further out.
    """
    meeting_day = start.astimezone(tz).date()
    today = now.astimezone(tz).date()
    days_ahead = (meeting_day - today).days

    if days_ahead == 0:
        return "Today"
    if days_ahead == 1:
        return "Tomorrow"
    local_start = start.astimezone(tz)
    if 2 <= days_ahead <= 7:
        return f"{local_start:%A}, {local_start:%b} {local_start.day}"
    return f"{local_start:%a}, {local_start:%b} {local_start.day}, {local_start.year}"
