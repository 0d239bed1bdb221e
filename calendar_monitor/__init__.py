"""calendar_monitor - aggregate calendar feeds into a live current/next meeting view.

Sources (local ICS files, ICS URLs and optionally a Google calendar) are read,
parsed, expanded over today and tomorrow, merged and cached; the status engine
derives the current meeting, the next meeting and active time blocks.
"""

__version__ = "0.1.0"
