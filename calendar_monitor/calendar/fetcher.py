"""Source reader for ICS calendar text from local files or http(s) URLs."""

import asyncio
import logging
import random
from pathlib import Path
from typing import Optional

import httpx

from calendar_monitor.core.http_client import (
    DEFAULT_HEADERS,
    get_shared_client,
    record_client_error,
    record_client_success,
)
from calendar_monitor.exceptions import SourceTimeoutError, SourceUnavailableError
from calendar_monitor.models import CalendarSource

logger = logging.getLogger(__name__)

CLIENT_ID = "ics_reader"
FILE_URL_PREFIX = "file://"

MAX_BACKOFF_SECONDS = 5.0
JITTER_MIN_FACTOR = 0.1
JITTER_MAX_FACTOR = 0.3


class ICSSourceReader:
    """Read raw calendar text for one configured source.

    Remote sources use the injected ``client`` if given, otherwise the shared
    pooled client. Every read is bounded by the source's timeout; exceeding
    it raises SourceTimeoutError instead of stalling the caller.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        max_retries: int = 1,
        backoff_factor: float = 0.5,
    ) -> None:
        self.client = client
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor

    async def read(self, source: CalendarSource) -> str:
        """Return the full text of the source.

        Raises:
            SourceTimeoutError: If the read does not finish within source.timeout_seconds
            SourceUnavailableError: If the file or URL cannot be read
        """
        try:
            return await asyncio.wait_for(self._read(source), timeout=source.timeout_seconds)
        except TimeoutError as e:
            raise SourceTimeoutError(
                source.name, f"no response within {source.timeout_seconds:g}s"
            ) from e

    async def _read(self, source: CalendarSource) -> str:
        if source.is_remote:
            return await self._read_remote(source)
        return await self._read_local(source)

    async def _read_local(self, source: CalendarSource) -> str:
        location = source.location
        if location.lower().startswith(FILE_URL_PREFIX):
            location = location[len(FILE_URL_PREFIX) :]
        path = Path(location).expanduser()

        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
        except OSError as e:
            raise SourceUnavailableError(source.name, f"cannot read file: {e}") from e

        logger.debug("Read %d bytes from %s", len(text), path)
        return text

    async def _read_remote(self, source: CalendarSource) -> str:
        client = self.client
        shared = client is None
        if client is None:
            client = await get_shared_client(CLIENT_ID)

        attempt = 0
        while True:
            try:
                response = await client.get(
                    source.location, headers=DEFAULT_HEADERS, timeout=source.timeout_seconds
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                # Status errors are not retried.
                raise SourceUnavailableError(
                    source.name,
                    f"HTTP {e.response.status_code}: {e.response.reason_phrase}",
                ) from e
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                if shared:
                    await record_client_error(CLIENT_ID)
                if attempt >= self.max_retries:
                    if isinstance(e, httpx.TimeoutException):
                        raise SourceTimeoutError(source.name, f"request timed out: {e}") from e
                    raise SourceUnavailableError(source.name, f"network error: {e}") from e
                backoff = self._calculate_backoff(attempt)
                logger.warning(
                    "Fetch of %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    source.name,
                    attempt + 1,
                    self.max_retries + 1,
                    backoff,
                    e,
                )
                await asyncio.sleep(backoff)
                attempt += 1
                continue
            except httpx.HTTPError as e:
                raise SourceUnavailableError(source.name, f"request failed: {e}") from e
            break

        if shared:
            await record_client_success(CLIENT_ID)

        text = response.text
        if not text.strip():
            raise SourceUnavailableError(source.name, "empty response body")

        content_type = response.headers.get("content-type", "").lower()
        if content_type and not any(ct in content_type for ct in ("text/calendar", "text/plain")):
            logger.debug("Unexpected content type %s from %s", content_type, source.name)

        logger.debug("Fetched %d bytes from %s", len(text), source.name)
        return text

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff with jitter, capped at MAX_BACKOFF_SECONDS."""
        base_backoff = min(self.backoff_factor * (2**attempt), MAX_BACKOFF_SECONDS)
        jitter = random.uniform(JITTER_MIN_FACTOR, JITTER_MAX_FACTOR) * base_backoff  # nosec B311
        return base_backoff + jitter
