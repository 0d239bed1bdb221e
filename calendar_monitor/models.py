"""Data models for calendar aggregation."""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from .calendar.datetime_utils import ensure_utc, format_clock_time, serialize_datetime_utc

UNTITLED_EVENT = "Untitled Event"
TIME_BLOCK_OPEN = "["
TIME_BLOCK_CLOSE = "]"


class EventStatus(str, Enum):
    """Where an event sits relative to a point in time."""

    UPCOMING = "upcoming"
    IN_PROGRESS = "in_progress"
    ENDED = "ended"


def event_status(start: datetime, end: datetime, now: datetime) -> EventStatus:
    """Classify an interval against now. Both bounds are inclusive for IN_PROGRESS."""
    if now < start:
        return EventStatus.UPCOMING
    if now <= end:
        return EventStatus.IN_PROGRESS
    return EventStatus.ENDED


def is_time_block_title(title: str) -> bool:
    """Check whether a title is wrapped in a matching pair of square brackets."""
    return len(title) >= 2 and title.startswith(TIME_BLOCK_OPEN) and title.endswith(TIME_BLOCK_CLOSE)


class CalendarEvent(BaseModel):
    """One concrete calendar occurrence.

    Instances are immutable; use ``with_updates`` to derive a modified copy.
    All instants are normalized to UTC on construction.
    """

    model_config = ConfigDict(frozen=True)

    title: str = Field(default=UNTITLED_EVENT, description="Event title (SUMMARY)")
    start_time: datetime = Field(..., description="Start instant (UTC)")
    end_time: datetime = Field(..., description="End instant (UTC)")
    description: Optional[str] = Field(default=None, description="Event description")
    location: Optional[str] = Field(default=None, description="Event location")
    attendees: tuple[str, ...] = Field(default=(), description="Attendee names or addresses")

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_to_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _check_interval(self) -> "CalendarEvent":
        if self.start_time > self.end_time:
            raise ValueError(
                f"Event {self.title!r} starts after it ends "
                f"({self.start_time.isoformat()} > {self.end_time.isoformat()})"
            )
        return self

    @field_serializer("start_time", "end_time")
    def _serialize_instant(self, dt: datetime) -> str:
        return serialize_datetime_utc(dt)

    def with_updates(self, **changes: Any) -> "CalendarEvent":
        """Return a validated copy with the given fields replaced."""
        return type(self).model_validate({**self.model_dump(), **changes})

    # Status queries. "now" is always supplied by the caller so nothing here is cached.

    def status(self, now: datetime) -> EventStatus:
        return event_status(self.start_time, self.end_time, now)

    def is_active(self, now: datetime) -> bool:
        return self.status(now) is EventStatus.IN_PROGRESS

    def is_upcoming(self, now: datetime) -> bool:
        return self.status(now) is EventStatus.UPCOMING

    def has_ended(self, now: datetime) -> bool:
        return self.status(now) is EventStatus.ENDED

    def time_until_start(self, now: datetime) -> int:
        """Seconds until the event starts (negative once started)."""
        return int((self.start_time - now).total_seconds())

    def time_until_end(self, now: datetime) -> int:
        """Seconds until the event ends (negative once ended)."""
        return int((self.end_time - now).total_seconds())

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    @property
    def duration_minutes(self) -> int:
        return int(self.duration.total_seconds() // 60)

    @property
    def is_time_block(self) -> bool:
        return is_time_block_title(self.title)

    @property
    def time_block_name(self) -> Optional[str]:
        """Title with the surrounding brackets removed, for time blocks only."""
        if not self.is_time_block:
            return None
        return self.title[1:-1]

    def format_time_remaining(self, now: datetime) -> str:
        """Countdown to the next boundary: end if in progress, start if upcoming."""
        from .domain.status_calculator import format_countdown

        status = self.status(now)
        if status is EventStatus.IN_PROGRESS:
            return format_countdown(self.time_until_end(now))
        if status is EventStatus.UPCOMING:
            return format_countdown(self.time_until_start(now))
        return format_countdown(0)

    def formatted_time_range(self, tz: tzinfo) -> str:
        return f"{format_clock_time(self.start_time, tz)} - {format_clock_time(self.end_time, tz)}"

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the wire shape consumed by display clients."""
        return self.model_dump(mode="json", exclude={"attendees"}, exclude_none=True)


@dataclass(frozen=True)
class RawEventDefinition:
    """One event definition extracted from a feed, before recurrence expansion.

    Transient: created by a parser, consumed by the expander within the same pass.
    """

    title: str
    start: datetime
    end: datetime
    description: Optional[str] = None
    location: Optional[str] = None
    recurrence_rule: Optional[str] = None
    exdates: tuple[datetime, ...] = ()
    exdate_days: tuple[date, ...] = ()
    attendees: tuple[str, ...] = ()
    source: Optional[str] = None

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def is_recurring(self) -> bool:
        return bool(self.recurrence_rule)


class CalendarSource(BaseModel):
    """Configuration for one calendar source: a filesystem path or an http(s) URL."""

    model_config = ConfigDict(frozen=True)

    location: str = Field(..., description="Filesystem path or http(s):// URL")
    name: str = Field(default="", description="Human-readable name used in logs")
    timeout_seconds: float = Field(default=10.0, gt=0, description="Read timeout in seconds")

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name"):
            data = {**data, "name": data.get("location", "")}
        return data

    @property
    def is_remote(self) -> bool:
        lowered = self.location.lower()
        return lowered.startswith("http://") or lowered.startswith("https://")

