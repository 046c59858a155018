"""
Snapshot builder — reconciles assignments with chart readings.

Build steps for one cycle:

  1. Count assignments per sorter and per output line (single pass).
  2. Ask the chart reader for every configured sorter.  Sorters that fail
     are simply missing from ``chart_data``; the build never fails.
  3. ``sku_by_sorter[s][sku]`` ← chart percentage, keyed by full SKU.
  4. For every assignment on sorter ``s`` whose SKU has a chart percentage,
     copy that percentage into ``sku_by_output_line[line]`` and
     ``sku_by_sorter_output_line["s-line"]``.
  5. ``global_percent`` ← first reading's percentages, averaged per SKU with
     the second reading when present.  A SKU seen by only one sorter keeps
     that sorter's value.

No readings at all → only the count fields are filled.  No assignments →
empty counts and distributions.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sorter_monitor.ingestion.chart_reader import ChartReader, DisabledChartReader
from sorter_monitor.models.assignment import Assignment
from sorter_monitor.models.chart import ChartReading
from sorter_monitor.models.snapshot import DataSnapshot, SkuShare
from sorter_monitor.utils.time_utils import format_display

logger = logging.getLogger(__name__)


def count_assignments(assignments: list[Assignment]) -> tuple[dict[int, int], dict[int, int]]:
    """Return ``(by_sorter, by_output_line)`` counts."""
    by_sorter: dict[int, int] = {}
    by_output_line: dict[int, int] = {}
    for a in assignments:
        by_sorter[a.sorter_id] = by_sorter.get(a.sorter_id, 0) + 1
        by_output_line[a.output_line] = by_output_line.get(a.output_line, 0) + 1
    return by_sorter, by_output_line


def global_distribution(readings: list[ChartReading]) -> dict[str, float]:
    """Sorter-averaged percentage per SKU from the first two readings.

    Args:
        readings: Successful readings in sorter order.

    Returns:
        SKU → percentage.  Empty when ``readings`` is empty.
    """
    if not readings:
        return {}

    result = dict(readings[0].percentage_by_sku)
    if len(readings) > 1:
        for sku, pct in readings[1].percentage_by_sku.items():
            if sku in result:
                result[sku] = (result[sku] + pct) / 2.0
            else:
                result[sku] = pct
    return result


class SnapshotBuilder:
    """Assembles one ``DataSnapshot`` per cycle.

    Args:
        chart_reader: Reader used for per-sorter percentages.  ``None`` is
            the same as ``DisabledChartReader()``.
        sorter_ids: Sorters to read, e.g. ``[1, 2]``.
    """

    def __init__(
        self,
        chart_reader: Optional[ChartReader] = None,
        sorter_ids: Optional[list[int]] = None,
    ) -> None:
        self.chart_reader = chart_reader or DisabledChartReader()
        self.sorter_ids = sorter_ids if sorter_ids is not None else [1, 2]

    def build(
        self,
        captured_at: datetime,
        assignments: list[Assignment],
        cycle: Optional[int] = None,
    ) -> DataSnapshot:
        """Build the snapshot for ``assignments`` captured at ``captured_at``."""
        by_sorter, by_output_line = count_assignments(assignments)

        readings: list[ChartReading] = []
        if self.chart_reader.enabled:
            readings = self.chart_reader.read_all(self.sorter_ids)
            logger.info(
                "Charts read: %d/%d sorters",
                len(readings), len(self.sorter_ids),
                extra={"cycle": cycle, "operation": "build_snapshot"},
            )

        return self.assemble(captured_at, assignments, readings, by_sorter, by_output_line)

    def assemble(
        self,
        captured_at: datetime,
        assignments: list[Assignment],
        readings: list[ChartReading],
        by_sorter: Optional[dict[int, int]] = None,
        by_output_line: Optional[dict[int, int]] = None,
    ) -> DataSnapshot:
        """Cross-reference ``assignments`` with already-read ``readings``."""
        if by_sorter is None or by_output_line is None:
            by_sorter, by_output_line = count_assignments(assignments)

        chart_data: dict[int, ChartReading] = {}
        sku_by_sorter: dict[int, dict[str, SkuShare]] = {}
        sku_by_output_line: dict[int, dict[str, SkuShare]] = {}
        sku_by_sorter_output_line: dict[str, dict[str, SkuShare]] = {}

        for reading in readings:
            sorter_id = reading.sorter_id
            chart_data[sorter_id] = reading
            sku_by_sorter[sorter_id] = {
                sku: SkuShare(count=0, percentage=pct)
                for sku, pct in reading.ordered_items()
            }

            for a in assignments:
                if a.sorter_id != sorter_id:
                    continue
                pct = reading.percentage_by_sku.get(a.sku)
                if pct is None:
                    continue
                share = SkuShare(count=1, percentage=pct)
                sku_by_output_line.setdefault(a.output_line, {})[a.sku] = share
                sku_by_sorter_output_line.setdefault(
                    f"{sorter_id}-{a.output_line}", {}
                )[a.sku] = share

        return DataSnapshot(
            timestamp=format_display(captured_at),
            captured_at=captured_at,
            assignments=list(assignments),
            total_count=len(assignments),
            by_sorter=by_sorter,
            by_output_line=by_output_line,
            chart_data=chart_data,
            global_percent=global_distribution(readings),
            sku_by_sorter=sku_by_sorter,
            sku_by_output_line=sku_by_output_line,
            sku_by_sorter_output_line=sku_by_sorter_output_line,
        )
