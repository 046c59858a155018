"""
Training CSV export — one row per (sorter, SKU) with a chart percentage.

File: ``{data folder}/training_data.csv``, semicolon-delimited (opens
directly in Spanish-locale Excel), append-only.  The header is written only
when the file is created::

    timestamp;sorter_id;sku;calibre;calidad;variedad;lineas;porcentaje;total_skus_activos
    2026-10-18 15:00:00;1;4J-D-SANTINA-C5WFTFG;4J;D;SANTINA;L2;12.3;9

Column notes
------------
calibre / calidad / variedad
    First three ``-`` separated SKU fields; all blank unless the SKU has at
    least three fields (``"Descarte"`` → blanks).
lineas
    Output lines carrying the SKU on that sorter, sorted, de-duplicated,
    ``L<n>`` tokens joined by spaces.  SKU match is case-insensitive.
porcentaje
    Chart percentage, one decimal.
total_skus_activos
    Number of SKUs on that sorter's chart.

Rows are ordered by sorter id, then by chart display order.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path

from sorter_monitor.errors import PersistenceError
from sorter_monitor.models.assignment import Assignment
from sorter_monitor.models.snapshot import DataSnapshot

logger = logging.getLogger(__name__)

CSV_DELIMITER = ";"
CSV_HEADER: list[str] = [
    "timestamp",
    "sorter_id",
    "sku",
    "calibre",
    "calidad",
    "variedad",
    "lineas",
    "porcentaje",
    "total_skus_activos",
]


def split_sku(sku: str) -> tuple[str, str, str]:
    """``"4J-D-SANTINA-C5WFTFG"`` → ``("4J", "D", "SANTINA")``."""
    parts = sku.split("-")
    if len(parts) < 3:
        return ("", "", "")
    return (parts[0], parts[1], parts[2])


def format_lines(assignments: list[Assignment], sorter_id: int, sku: str) -> str:
    """``"L1 L4"`` for the lines carrying ``sku`` on ``sorter_id``."""
    wanted = sku.casefold()
    lines = sorted({
        a.output_line
        for a in assignments
        if a.sorter_id == sorter_id and a.sku.casefold() == wanted
    })
    return " ".join(f"L{line}" for line in lines)


def build_training_rows(snapshot: DataSnapshot) -> list[list[str]]:
    """CSV rows (header excluded) for every chart percentage in ``snapshot``."""
    rows: list[list[str]] = []
    for sorter_id in sorted(snapshot.chart_data):
        reading = snapshot.chart_data[sorter_id]
        sorter_assignments = snapshot.sorter_assignments(sorter_id)
        for sku, pct in reading.ordered_items():
            calibre, calidad, variedad = split_sku(sku)
            rows.append([
                snapshot.timestamp,
                str(sorter_id),
                sku,
                calibre,
                calidad,
                variedad,
                format_lines(sorter_assignments, sorter_id, sku),
                f"{pct:.1f}",
                str(reading.total_skus),
            ])
    return rows


def append_training_rows(path: Path, snapshot: DataSnapshot) -> int:
    """Append ``snapshot``'s rows to ``path``; write the header if the file is new.

    Returns:
        Number of data rows written.

    Raises:
        PersistenceError: If the file cannot be opened or written.
    """
    rows = build_training_rows(snapshot)
    is_new = not path.exists()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", newline="", encoding="utf-8") as f:
            writer = csv.writer(f, delimiter=CSV_DELIMITER)
            if is_new:
                writer.writerow(CSV_HEADER)
            writer.writerows(rows)
    except OSError as exc:
        raise PersistenceError(f"Could not append training rows: {exc}", str(path)) from exc

    logger.debug("Training CSV: %d rows appended to %s", len(rows), path)
    return len(rows)
