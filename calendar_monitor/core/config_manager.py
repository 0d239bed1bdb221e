"""Configuration management for calendar_monitor."""

from __future__ import annotations

import datetime
import logging
import os
from pathlib import Path
from typing import Callable, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from calendar_monitor.core.timezone_utils import DEFAULT_TIMEZONE, get_timezone
from calendar_monitor.models import CalendarSource

logger = logging.getLogger(__name__)

ICS_FILE_PATHS_VAR = "ICS_FILE_PATHS"
ICS_FILE_PATH_VAR = "ICS_FILE_PATH"
CACHE_TTL_VAR = "CALENDAR_MONITOR_CACHE_TTL"
TIMEZONE_VAR = "CALENDAR_MONITOR_TIMEZONE"
SOURCE_TIMEOUT_VAR = "CALENDAR_MONITOR_SOURCE_TIMEOUT"
LOG_LEVEL_VAR = "CALENDAR_MONITOR_LOG_LEVEL"
GOOGLE_TOKEN_VAR = "GOOGLE_ACCESS_TOKEN"
GOOGLE_CALENDAR_ID_VAR = "GOOGLE_CALENDAR_ID"

DEFAULT_CACHE_TTL_SECONDS = 300
DEFAULT_SOURCE_TIMEOUT_SECONDS = 10.0

_T = TypeVar("_T", int, float)


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Skips blank lines and ``#`` comments, strips surrounding quotes from
    values. A missing or unreadable file yields an empty dict.
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", path, exc_info=True)
        return result

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, val = line.split("=", 1)
        key = key.strip()
        if key:
            result[key] = val.strip().strip('"').strip("'")

    return result


def parse_source_list(text: Optional[str]) -> list[str]:
    """Split a comma-separated source list, dropping blanks and duplicates, keeping order."""
    if not text:
        return []
    seen: dict[str, None] = {}
    for part in text.split(","):
        item = part.strip()
        if item:
            seen.setdefault(item, None)
    return list(seen)


class MonitorConfig(BaseModel):
    """Resolved runtime configuration."""

    model_config = ConfigDict(frozen=True)

    sources: list[str] = Field(default_factory=list, description="ICS paths or URLs")
    cache_ttl_seconds: int = Field(default=DEFAULT_CACHE_TTL_SECONDS, ge=0)
    timezone: str = Field(default=DEFAULT_TIMEZONE, description="Local timezone name")
    source_timeout_seconds: float = Field(default=DEFAULT_SOURCE_TIMEOUT_SECONDS, gt=0)
    log_level: str = Field(default="INFO")
    google_access_token: Optional[str] = Field(default=None, repr=False)
    google_calendar_id: str = Field(default="primary")

    @property
    def tzinfo(self) -> datetime.tzinfo:
        return get_timezone(self.timezone)

    def calendar_sources(self) -> list[CalendarSource]:
        return [
            CalendarSource(location=location, timeout_seconds=self.source_timeout_seconds)
            for location in self.sources
        ]


class ConfigManager:
    """Build MonitorConfig from environment variables and an optional .env file."""

    def __init__(self, env_file_path: Path | None = None):
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env values into os.environ without overriding existing variables.

        Returns:
            Keys that were set from the file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        for key, val in parse_env_file(self.env_file_path).items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
        return set_keys

    def build_config(self) -> MonitorConfig:
        """Read the recognized environment variables into a MonitorConfig.

        ICS_FILE_PATHS (comma separated) takes precedence; the single
        ICS_FILE_PATH is appended after it. Invalid numbers keep their defaults.
        """
        sources = parse_source_list(os.environ.get(ICS_FILE_PATHS_VAR))
        legacy = (os.environ.get(ICS_FILE_PATH_VAR) or "").strip()
        if legacy and legacy not in sources:
            sources.append(legacy)

        return MonitorConfig(
            sources=sources,
            cache_ttl_seconds=_env_number(CACHE_TTL_VAR, int, DEFAULT_CACHE_TTL_SECONDS),
            timezone=os.environ.get(TIMEZONE_VAR) or DEFAULT_TIMEZONE,
            source_timeout_seconds=_env_number(
                SOURCE_TIMEOUT_VAR, float, DEFAULT_SOURCE_TIMEOUT_SECONDS
            ),
            log_level=(os.environ.get(LOG_LEVEL_VAR) or "INFO").upper(),
            google_access_token=os.environ.get(GOOGLE_TOKEN_VAR) or None,
            google_calendar_id=os.environ.get(GOOGLE_CALENDAR_ID_VAR) or "primary",
        )

    def load_full_config(self) -> MonitorConfig:
        """Load .env defaults, then build the configuration from the environment."""
        self.load_env_file()
        return self.build_config()


def _env_number(name: str, cast: Callable[[str], _T], default: _T) -> _T:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        logger.warning("Invalid %s=%r; using default %s", name, raw, default)
        return default
    if value < 0 or (cast is float and value == 0):
        logger.warning("Invalid %s=%r; using default %s", name, raw, default)
        return default
    return value
