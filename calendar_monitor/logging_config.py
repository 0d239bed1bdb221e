"""
Central logging configuration for calendar_monitor.

Console output goes through a colorlog formatter on stderr; chatty third-party
loggers are capped at WARNING so per-tick status queries stay readable.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

DEBUG_ENV_VAR = "CALENDAR_MONITOR_DEBUG"
LOG_LEVEL_ENV_VAR = "CALENDAR_MONITOR_LOG_LEVEL"

LOG_FORMAT = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"
LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}

NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "icalendar")


def _env_debug_enabled() -> bool:
    return os.environ.get(DEBUG_ENV_VAR, "").strip().lower() in ("1", "true", "yes", "on")


def init_logging(level_name: Optional[str] = None) -> None:
    """Install a colorized stderr handler on the root logger and set its level.

    A handler is only added if the root logger has none, so repeated calls
    (or an embedding application's own setup) do not duplicate output.
    CALENDAR_MONITOR_DEBUG forces DEBUG regardless of ``level_name``.
    """
    if _env_debug_enabled():
        level_name = "DEBUG"

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        handler.setFormatter(
            ColoredFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT, log_colors=LOG_COLORS)
        )
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        candidate = getattr(logging, level_name.upper(), None)
        if isinstance(candidate, int):
            level = candidate
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def configure_logging(debug_mode: bool = False) -> None:
    """Set package and third-party logger levels.

    Args:
        debug_mode: Enable DEBUG for calendar_monitor modules. Also enabled by
            the CALENDAR_MONITOR_DEBUG environment variable.
    """
    final_debug = debug_mode or _env_debug_enabled()

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("calendar_monitor").setLevel(logging.DEBUG if final_debug else logging.INFO)
