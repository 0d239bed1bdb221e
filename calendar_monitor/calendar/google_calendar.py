"""Remote calendar source backed by the Google Calendar v3 REST API.

Token acquisition and refresh happen elsewhere; this client only needs an
already-valid OAuth access token.
"""

import logging
from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from calendar_monitor.calendar.datetime_utils import ensure_utc, serialize_datetime_utc
from calendar_monitor.calendar.rrule_expander import LookaheadWindow
from calendar_monitor.core.http_client import get_shared_client
from calendar_monitor.exceptions import RemoteCalendarError
from calendar_monitor.models import UNTITLED_EVENT, RawEventDefinition

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
DEFAULT_CALENDAR_ID = "primary"
MAX_RESULTS = 50
MAX_PAGES = 10
CLIENT_ID = "google_calendar"


@runtime_checkable
class RemoteCalendarClient(Protocol):
    """Anything that can list raw event definitions for a time window."""

    name: str

    async def fetch_definitions(self, window: LookaheadWindow) -> list[RawEventDefinition]: ...


class GoogleCalendarClient:
    """List events for the lookahead window from one Google calendar."""

    def __init__(
        self,
        access_token: str,
        calendar_id: str = DEFAULT_CALENDAR_ID,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.access_token = access_token
        self.calendar_id = calendar_id
        self.client = client
        self.timeout_seconds = timeout_seconds
        self.name = f"google:{calendar_id}"

    @property
    def events_url(self) -> str:
        calendar_id = quote(self.calendar_id, safe="@")
        return f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events"

    async def fetch_definitions(self, window: LookaheadWindow) -> list[RawEventDefinition]:
        """Fetch timed events intersecting the window, following nextPageToken.

        Raises:
            RemoteCalendarError: On transport failures, non-2xx responses or bad JSON
        """
        client = self.client or await get_shared_client(CLIENT_ID)
        params = {
            "timeMin": serialize_datetime_utc(window.start),
            "timeMax": serialize_datetime_utc(window.end),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": str(MAX_RESULTS),
        }

        items: list[dict[str, Any]] = []
        for page in range(1, MAX_PAGES + 1):
            payload = await self._fetch_page(client, params)
            items.extend(payload.get("items") or [])
            page_token = payload.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token
        else:
            logger.warning("%s: stopped after %d pages", self.name, MAX_PAGES)

        definitions = [d for d in (self.convert_item(item) for item in items) if d is not None]
        logger.info("Fetched %d events from %s (%d page(s))", len(definitions), self.name, page)
        return definitions

    async def _fetch_page(
        self, client: httpx.AsyncClient, params: dict[str, str]
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.access_token}"}
        try:
            response = await client.get(
                self.events_url, params=params, headers=headers, timeout=self.timeout_seconds
            )
        except httpx.HTTPError as e:
            raise RemoteCalendarError(self.name, f"request failed: {e}") from e

        if response.status_code >= 400:
            raise RemoteCalendarError(
                self.name,
                f"API error {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise RemoteCalendarError(self.name, f"invalid JSON response: {e}") from e

    def convert_item(self, item: dict[str, Any]) -> Optional[RawEventDefinition]:
        """Convert one API item; returns None for all-day, cancelled or unparseable items."""
        title = item.get("summary") or UNTITLED_EVENT
        if item.get("status") == "cancelled":
            logger.debug("Skipping cancelled event: %s", title)
            return None

        start_raw = (item.get("start") or {}).get("dateTime")
        end_raw = (item.get("end") or {}).get("dateTime")
        if not start_raw or not end_raw:
            logger.debug("Skipping all-day event: %s", title)
            return None

        try:
            start = _parse_rfc3339(start_raw)
            end = _parse_rfc3339(end_raw)
        except ValueError as e:
            logger.warning("%s: skipping event %r with bad time: %s", self.name, title, e)
            return None
        if start > end:
            logger.warning("%s: skipping event %r that starts after it ends", self.name, title)
            return None

        attendees = tuple(
            attendee["email"] for attendee in item.get("attendees") or [] if attendee.get("email")
        )
        return RawEventDefinition(
            title=title,
            start=start,
            end=end,
            description=item.get("description") or None,
            location=item.get("location") or None,
            attendees=attendees,
            source=self.name,
        )


def _parse_rfc3339(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp without offset: {value!r}")
    return ensure_utc(parsed)
