"""Command-line entry for calendar_monitor.

Runs a single status query against the configured sources and prints it.
This is a diagnostic tool; serving updates to browsers is the transport
layer's job.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from calendar_monitor.core.config_manager import ConfigManager
from calendar_monitor.core.http_client import close_all_clients
from calendar_monitor.core.timezone_utils import now_utc
from calendar_monitor.domain.status_calculator import (
    MeetingStatusReport,
    describe_time_until_start,
    format_countdown,
    format_duration,
    format_meeting_date,
)
from calendar_monitor.logging_config import configure_logging, init_logging
from calendar_monitor.service import CalendarMonitorService


def _create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="calendar_monitor",
        description="Calendar Monitor - print the current and next meeting",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m calendar_monitor                    # Human-readable status
  python -m calendar_monitor --json             # MeetingUpdate JSON payload
  python -m calendar_monitor --env-file my.env  # Load defaults from another .env
        """,
    )
    parser.add_argument("--json", action="store_true", help="Print the JSON status payload")
    parser.add_argument(
        "--env-file",
        type=Path,
        metavar="PATH",
        help="Path to a .env file with default settings (default: ./.env)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def _render_text(
    service: CalendarMonitorService, report: MeetingStatusReport, now: datetime
) -> str:
    tz = service.timezone
    lines = []

    if report.current is not None:
        remaining = format_countdown(report.countdown_seconds or 0)
        urgent = " (ending soon)" if report.is_urgent else ""
        lines.append(f"Current: {report.current.title}  {report.current.formatted_time_range(tz)}")
        lines.append(f"  ends in {remaining}{urgent}")
    else:
        lines.append("Current: no meeting in progress")

    if report.next is not None:
        lines.append(
            f"Next:    {report.next.title}  {report.next.formatted_time_range(tz)} "
            f"({format_meeting_date(report.next.start_time, now, tz)})"
        )
        lines.append(
            f"  duration {format_duration(report.next.duration)}, "
            f"starts in {describe_time_until_start(report.next, now)}"
        )
    else:
        lines.append("Next:    nothing scheduled")

    for block in report.active_time_blocks:
        lines.append(
            f"Block:   {block.time_block_name}  {block.formatted_time_range(tz)} "
            f"({block.format_time_remaining(now)} left)"
        )
    return "\n".join(lines)


async def _run(as_json: bool, env_file: Optional[Path], debug: bool) -> int:
    manager = ConfigManager(env_file)
    config = manager.load_full_config()
    init_logging("DEBUG" if debug else config.log_level)
    configure_logging(debug)

    service = CalendarMonitorService.from_config(config)
    now = now_utc()
    try:
        report = await service.get_status(now)
    finally:
        await close_all_clients()

    if as_json:
        print(json.dumps(report.to_payload(), indent=2))
    else:
        print(_render_text(service, report, now))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Run the calendar_monitor CLI."""
    args = _create_parser().parse_args(argv)
    return asyncio.run(_run(args.json, args.env_file, args.debug))


if __name__ == "__main__":
    sys.exit(main())
