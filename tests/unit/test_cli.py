"""Unit tests for the ``python -m calendar_monitor`` entry point."""

import json
import logging

import pytest

from calendar_monitor.__main__ import _create_parser, main
from calendar_monitor.core.timezone_utils import TEST_TIME_ENV_VAR

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def restore_logger_levels():
    names = ("", "calendar_monitor", "httpx", "httpcore", "asyncio", "icalendar")
    levels = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)


@pytest.fixture
def configured_calendar(monkeypatch, write_ics, ics, vevent, tmp_path):
    """Point the CLI at one local calendar and pin the clock to Monday 10:15 Istanbul."""
    path = write_ics(
        ics(
            vevent("Standup", "20250616T070000Z", "20250616T073000Z", "LOCATION:Room 1"),
            vevent("[Focus]", "20250616T060000Z", "20250616T090000Z"),
            vevent("Review", "20250617T060000Z", "20250617T070000Z"),
        )
    )
    monkeypatch.setenv("ICS_FILE_PATHS", str(path))
    monkeypatch.setenv("CALENDAR_MONITOR_TIMEZONE", "Europe/Istanbul")
    monkeypatch.setenv(TEST_TIME_ENV_VAR, "2025-06-16T07:15:00Z")
    return tmp_path / "absent.env"


class TestParser:
    def test_defaults(self):
        args = _create_parser().parse_args([])
        assert args.json is False
        assert args.env_file is None
        assert args.debug is False

    def test_flags(self, tmp_path):
        args = _create_parser().parse_args(["--json", "--debug", "--env-file", str(tmp_path / "x.env")])
        assert args.json is True
        assert args.debug is True
        assert args.env_file == tmp_path / "x.env"


class TestMain:
    def test_json_output(self, configured_calendar, capsys):
        assert main(["--json", "--env-file", str(configured_calendar)]) == 0

        payload = json.loads(capsys.readouterr().out)
        assert payload["current_meeting"]["title"] == "Standup"
        assert payload["current_meeting"]["location"] == "Room 1"
        assert payload["countdown_seconds"] == 900
        assert payload["next_meeting"]["title"] == "Review"
        assert [b["title"] for b in payload["active_time_blocks"]] == ["[Focus]"]

    def test_text_output(self, configured_calendar, capsys):
        assert main(["--env-file", str(configured_calendar)]) == 0

        out = capsys.readouterr().out
        assert "Current: Standup  10:00 - 10:30" in out
        assert "ends in 15:00" in out
        assert "Next:    Review  09:00 - 10:00 (Tomorrow)" in out
        assert "duration 1h 0m" in out
        assert "Block:   Focus  09:00 - 12:00 (01:45:00 left)" in out

    def test_no_sources(self, tmp_path, capsys):
        assert main(["--env-file", str(tmp_path / "absent.env")]) == 0

        out = capsys.readouterr().out
        assert "no meeting in progress" in out
        assert "nothing scheduled" in out
