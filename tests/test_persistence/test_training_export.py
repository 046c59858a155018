"""
Tests for sorter_monitor.persistence.training_export.

What we test
------------
1. SKU split into calibre / calidad / variedad.
2. ``lineas`` column: sorted, de-duplicated, case-insensitive.
3. Row content and ordering (sorter, then display order).
4. Header written exactly once across appends; semicolon delimiter.
"""

from __future__ import annotations

import csv

from sorter_monitor.models.assignment import Assignment
from sorter_monitor.persistence.training_export import (
    CSV_HEADER,
    append_training_rows,
    build_training_rows,
    format_lines,
    split_sku,
)


class TestSplitSku:
    def test_full_sku(self):
        assert split_sku("4J-D-SANTINA-C5WFTFG") == ("4J", "D", "SANTINA")

    def test_three_parts(self):
        assert split_sku("XL-E-LAPINS") == ("XL", "E", "LAPINS")

    def test_short_sku_blank(self):
        assert split_sku("Descarte") == ("", "", "")
        assert split_sku("4J-D") == ("", "", "")


class TestFormatLines:
    def test_sorted_and_deduplicated(self):
        assignments = [
            Assignment(salida=7, sku="X-A", sorter_id=1),
            Assignment(salida=3, sku="x-a", sorter_id=1),
            Assignment(salida=7, sku="X-A", sorter_id=1),
            Assignment(salida=1, sku="X-A", sorter_id=2),
        ]
        assert format_lines(assignments, 1, "X-A") == "L3 L7"

    def test_no_lines(self):
        assert format_lines([], 1, "X") == ""


class TestBuildRows:
    def test_santina_row(self, sample_snapshot):
        rows = build_training_rows(sample_snapshot)
        row = rows[0]
        assert row == [
            "2026-10-18 15:00:00",
            "1",
            "4J-D-SANTINA-C5WFTFG",
            "4J",
            "D",
            "SANTINA",
            "L2",
            "12.3",
            "2",
        ]

    def test_order_sorter_then_display(self, sample_snapshot):
        rows = build_training_rows(sample_snapshot)
        assert [(r[1], r[2]) for r in rows] == [
            ("1", "4J-D-SANTINA-C5WFTFG"),
            ("1", "3J-D-LAPINS-C5WFTFG"),
            ("2", "4J-D-SANTINA-C5WFTFG"),
            ("2", "Descarte"),
        ]

    def test_multi_line_sku(self, sample_snapshot):
        rows = build_training_rows(sample_snapshot)
        assert rows[1][6] == "L5 L7"

    def test_discard_row_blank_fields(self, sample_snapshot):
        discard = build_training_rows(sample_snapshot)[3]
        assert discard[3:6] == ["", "", ""]
        assert discard[6] == "L9"
        assert discard[7] == "5.0"


class TestAppend:
    def test_header_once(self, tmp_path, sample_snapshot):
        path = tmp_path / "out" / "training_data.csv"
        assert append_training_rows(path, sample_snapshot) == 4
        assert append_training_rows(path, sample_snapshot) == 4

        with path.open(newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f, delimiter=";"))
        assert rows[0] == CSV_HEADER
        assert len(rows) == 1 + 8
        assert sum(1 for r in rows if r == CSV_HEADER) == 1

    def test_semicolon_delimited(self, tmp_path, sample_snapshot):
        path = tmp_path / "training_data.csv"
        append_training_rows(path, sample_snapshot)
        first_line = path.read_text(encoding="utf-8").splitlines()[0]
        assert first_line == ";".join(CSV_HEADER)
