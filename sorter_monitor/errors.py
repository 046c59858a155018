"""
Exception hierarchy for the sorter monitor.

Every failure mode named here is *non-fatal* to the monitoring loop: the
cycle coordinator catches these at the cycle seam, logs them with cycle and
sorter context, and carries on with the next step or the next cycle.

  SorterMonitorError        — base class; never raised directly.
  AssignmentFetchError      — assignment API unreachable, non-200, bad JSON.
  ChartReadError            — one sorter's chart page unreadable or empty.
  EnrichmentError           — text-generation service unreachable / bad body.
  PersistenceError          — a data file could not be written.
"""

from __future__ import annotations

from typing import Optional


class SorterMonitorError(Exception):
    """Base class for all sorter monitor errors."""


class AssignmentFetchError(SorterMonitorError):
    """The assignment list could not be fetched or parsed for this cycle."""


class ChartReadError(SorterMonitorError):
    """A sorter's chart page could not be read.

    Attributes:
        sorter_id: Sorter whose chart read failed.
    """

    def __init__(self, sorter_id: int, message: str) -> None:
        super().__init__(f"sorter {sorter_id}: {message}")
        self.sorter_id = sorter_id


class EnrichmentError(SorterMonitorError):
    """The advisory text-generation service failed or returned junk."""


class PersistenceError(SorterMonitorError):
    """A data file could not be written.

    Attributes:
        path: File that failed, when known.
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message if path is None else f"{message} ({path})")
        self.path = path
