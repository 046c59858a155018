"""
Snapshot models — one cycle's reconciled view, and the history of them.

A ``DataSnapshot`` cross-references three things captured in the same cycle:

  1. The raw assignment list (who runs what on which output line).
  2. Per-sorter chart readings (real percentages from the dashboard).
  3. Derived distribution tables keyed by the *full* SKU string:

       global_percent             SKU → sorter-averaged %
       sku_by_sorter              sorter → SKU → share
       sku_by_output_line         line → SKU → share
       sku_by_sorter_output_line  "<sorter>-<line>" → SKU → share

The per-line tables spread a sorter-level percentage over whichever lines
carry that SKU.  They are a display convenience, not a per-line measurement.

Snapshots are frozen once built and only ever appended to a
``SnapshotHistory``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from sorter_monitor.models.assignment import Assignment
from sorter_monitor.models.chart import ChartReading


class SkuShare(BaseModel):
    """One distribution cell.

    Attributes:
        count: 0 for chart-level entries (counts are not reliable there),
            1 for an entry spread onto an output line.
        percentage: Displayed percentage for the SKU.
    """

    model_config = ConfigDict(frozen=True)

    count: int = 0
    percentage: float = 0.0


class DataSnapshot(BaseModel):
    """Reconciled per-cycle state.  See module docstring for the tables."""

    model_config = ConfigDict(frozen=True)

    timestamp: str
    captured_at: datetime
    assignments: list[Assignment] = Field(default_factory=list)
    total_count: int = 0
    by_sorter: dict[int, int] = Field(default_factory=dict)
    by_output_line: dict[int, int] = Field(default_factory=dict)
    chart_data: dict[int, ChartReading] = Field(default_factory=dict)

    global_percent: dict[str, float] = Field(default_factory=dict)
    sku_by_sorter: dict[int, dict[str, SkuShare]] = Field(default_factory=dict)
    sku_by_output_line: dict[int, dict[str, SkuShare]] = Field(default_factory=dict)
    sku_by_sorter_output_line: dict[str, dict[str, SkuShare]] = Field(default_factory=dict)

    @property
    def has_chart_data(self) -> bool:
        return bool(self.chart_data)

    def sorter_assignments(self, sorter_id: int) -> list[Assignment]:
        return [a for a in self.assignments if a.sorter_id == sorter_id]


class SnapshotHistory(BaseModel):
    """Append-only history of snapshots, persisted as ``dataset.json``.

    Not frozen: the cycle coordinator appends to it once per cycle.  Existing
    snapshots are never modified.
    """

    collection_start: datetime
    collection_end: datetime
    total_snapshots: int = 0
    snapshots: list[DataSnapshot] = Field(default_factory=list)

    @classmethod
    def empty(cls, now: datetime) -> "SnapshotHistory":
        return cls(collection_start=now, collection_end=now)

    def append(self, snapshot: DataSnapshot) -> None:
        self.snapshots.append(snapshot)
        self.total_snapshots = len(self.snapshots)
        self.collection_end = snapshot.captured_at

    @property
    def latest(self) -> Optional[DataSnapshot]:
        return self.snapshots[-1] if self.snapshots else None
