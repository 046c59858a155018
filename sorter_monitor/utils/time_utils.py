"""
Time helpers shared by the snapshot builder, persistence and advisor.

The plant dashboard and the training CSV use local wall-clock time in
``YYYY-MM-DD HH:MM:SS`` form; advice timestamps use ISO-8601.  Every
``datetime`` produced here is timezone-aware.
"""

from __future__ import annotations

from datetime import datetime

DISPLAY_FORMAT = "%Y-%m-%d %H:%M:%S"
DAY_STAMP_FORMAT = "%Y%m%d"


def now_local() -> datetime:
    """Return the current local datetime with timezone info."""
    return datetime.now().astimezone()


def format_display(ts: datetime) -> str:
    """Format ``ts`` as ``YYYY-MM-DD HH:MM:SS`` (no zone suffix)."""
    return ts.strftime(DISPLAY_FORMAT)


def day_stamp(ts: datetime) -> str:
    """Return the ``YYYYMMDD`` stamp used in daily snapshot file names."""
    return ts.strftime(DAY_STAMP_FORMAT)


def format_iso(ts: datetime) -> str:
    """ISO-8601 at second precision, e.g. ``2026-10-18T15:00:00-03:00``."""
    return ts.isoformat(timespec="seconds")
