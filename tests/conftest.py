"""Shared fixtures for calendar_monitor tests."""

from collections.abc import AsyncIterator, Generator
from datetime import UTC, datetime, tzinfo
from pathlib import Path
from typing import Any, Callable
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio

from calendar_monitor.core.http_client import close_all_clients
from calendar_monitor.core.timezone_utils import TEST_TIME_ENV_VAR

ICS_HEADER = "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nPRODID:-//Calendar Monitor Test//EN\r\n"
ICS_FOOTER = "END:VCALENDAR\r\n"


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: End-to-end aggregation tests")


def build_vevent(summary: str | None, dtstart: str | None, dtend: str | None, *extra: str) -> str:
    """Return one VEVENT block. ``dtstart``/``dtend`` are full property lines or bare values."""
    lines = ["BEGIN:VEVENT", "UID:" + (summary or "untitled").replace(" ", "-") + "@test"]
    if summary is not None:
        lines.append(f"SUMMARY:{summary}")
    for name, value in (("DTSTART", dtstart), ("DTEND", dtend)):
        if value is None:
            continue
        lines.append(value if value.startswith(name) else f"{name}:{value}")
    lines.extend(extra)
    lines.append("END:VEVENT")
    return "\r\n".join(lines) + "\r\n"


def build_ics(*vevents: str) -> str:
    """Wrap VEVENT blocks in a VCALENDAR document."""
    return ICS_HEADER + "".join(vevents) + ICS_FOOTER


@pytest.fixture
def local_tz() -> tzinfo:
    """Fixed-offset zone (UTC+3, no DST) so local/UTC conversions are deterministic."""
    return ZoneInfo("Europe/Istanbul")


@pytest.fixture
def fixed_now() -> datetime:
    """Monday 2025-06-16 10:15 in Europe/Istanbul."""
    return datetime(2025, 6, 16, 7, 15, tzinfo=UTC)


@pytest.fixture
def write_ics(tmp_path: Path) -> Callable[..., Path]:
    """Write an ICS document into tmp_path and return its path."""

    def _write(content: str, name: str = "calendar.ics") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Keep pinned test time and config variables from leaking between tests."""
    for var in (
        TEST_TIME_ENV_VAR,
        "ICS_FILE_PATHS",
        "ICS_FILE_PATH",
        "CALENDAR_MONITOR_CACHE_TTL",
        "CALENDAR_MONITOR_TIMEZONE",
        "CALENDAR_MONITOR_SOURCE_TIMEOUT",
        "CALENDAR_MONITOR_LOG_LEVEL",
        "CALENDAR_MONITOR_DEBUG",
        "GOOGLE_ACCESS_TOKEN",
        "GOOGLE_CALENDAR_ID",
    ):
        monkeypatch.delenv(var, raising=False)
    yield


@pytest_asyncio.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close shared httpx clients after every test."""
    yield
    await close_all_clients()


@pytest.fixture
def vevent() -> Callable[..., str]:
    """Builder for VEVENT blocks: vevent(summary, dtstart, dtend, *extra_lines)."""
    return build_vevent


@pytest.fixture
def ics() -> Callable[..., str]:
    """Builder for VCALENDAR documents: ics(*vevent_blocks)."""
    return build_ics
