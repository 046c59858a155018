"""
Tests for sorter_monitor.advisor.imbalance.

What we test
------------
1. Threshold is strict: a difference of exactly 8.0 is not an imbalance.
2. A SKU absent from one sorter counts as 0 there.
3. Priority rises with difference at fixed load, and with load at fixed difference.
4. Ordering: descending priority, ties broken by SKU ascending.
5. AdvisorState construction from a snapshot (pct > 0, lines, sorters 1 and 2).
"""

from __future__ import annotations

import pytest

from sorter_monitor.advisor.imbalance import (
    build_advisor_state,
    compute_priority,
    detect_imbalances,
    lines_for_sku,
)
from sorter_monitor.models.advice import AdvisorState, SkuLoad
from sorter_monitor.models.assignment import Assignment
from sorter_monitor.models.chart import ChartReading
from sorter_monitor.snapshot.builder import SnapshotBuilder


def _state(fixed_now, s1: dict[str, float], s2: dict[str, float]) -> AdvisorState:
    return AdvisorState(
        captured_at=fixed_now,
        sorter_1={sku: SkuLoad(percentage=p) for sku, p in s1.items()},
        sorter_2={sku: SkuLoad(percentage=p) for sku, p in s2.items()},
    )


# ── Threshold ─────────────────────────────────────────────────────────────────

class TestThreshold:
    def test_exactly_threshold_excluded(self, fixed_now):
        assert detect_imbalances(_state(fixed_now, {"X": 18.0}, {"X": 10.0})) == []

    def test_just_above_threshold_included(self, fixed_now):
        result = detect_imbalances(_state(fixed_now, {"X": 18.01}, {"X": 10.0}))
        assert [imb.sku for imb in result] == ["X"]

    def test_balanced_state(self, fixed_now):
        assert detect_imbalances(_state(fixed_now, {"X": 50.0}, {"X": 45.0})) == []

    def test_custom_threshold(self, fixed_now):
        result = detect_imbalances(_state(fixed_now, {"X": 50.0}, {"X": 45.0}), threshold=2.0)
        assert len(result) == 1

    def test_absent_side_counts_as_zero(self, fixed_now):
        result = detect_imbalances(_state(fixed_now, {"X": 12.0}, {}))
        assert result[0].pct2 == 0.0
        assert result[0].difference == 12.0

    def test_empty_state(self, fixed_now):
        assert detect_imbalances(_state(fixed_now, {}, {})) == []

    def test_every_result_exceeds_threshold(self, fixed_now):
        result = detect_imbalances(
            _state(fixed_now, {"A": 30.0, "B": 9.0, "C": 1.0}, {"A": 5.0, "B": 0.5, "D": 20.0})
        )
        assert all(imb.difference > 8.0 for imb in result)


# ── Priority ──────────────────────────────────────────────────────────────────

class TestPriority:
    def test_formula(self):
        # total 100, relative 20/101
        expected = 20.0 * 2.0 * (1 + 20.0 / 101.0)
        assert compute_priority(60.0, 40.0, 20.0) == pytest.approx(expected)

    def test_monotonic_in_difference(self):
        assert compute_priority(35.0, 15.0, 20.0) > compute_priority(30.0, 20.0, 10.0)

    def test_monotonic_in_load(self):
        assert compute_priority(60.0, 40.0, 20.0) > compute_priority(30.0, 10.0, 20.0)

    def test_zero_load_is_safe(self):
        assert compute_priority(0.0, 0.0, 0.0) == 0.0


# ── Ordering ──────────────────────────────────────────────────────────────────

class TestOrdering:
    def test_descending_priority(self, fixed_now):
        result = detect_imbalances(
            _state(fixed_now, {"SMALL": 20.0, "BIG": 60.0}, {"SMALL": 10.0, "BIG": 20.0})
        )
        assert [imb.sku for imb in result] == ["BIG", "SMALL"]
        assert result[0].priority >= result[1].priority

    def test_tie_broken_by_sku(self, fixed_now):
        result = detect_imbalances(
            _state(fixed_now, {"B": 30.0, "A": 10.0}, {"B": 10.0, "A": 30.0})
        )
        assert result[0].priority == result[1].priority
        assert [imb.sku for imb in result] == ["A", "B"]


# ── State construction ────────────────────────────────────────────────────────

class TestBuildAdvisorState:
    def test_loads_from_chart(self, sample_snapshot):
        state = build_advisor_state(sample_snapshot)
        assert state.sorter_1["3J-D-LAPINS-C5WFTFG"].percentage == 60.0
        assert state.sorter_1["3J-D-LAPINS-C5WFTFG"].lines == [5, 7]
        assert state.sorter_2["4J-D-SANTINA-C5WFTFG"].lines == [2]
        assert state.captured_at == sample_snapshot.captured_at

    def test_zero_percentages_dropped(self, fixed_now):
        reading = ChartReading(
            sorter_id=1, captured_at=fixed_now,
            percentage_by_sku={"X": 0.0, "Y": 3.0}, ordered_skus=["X", "Y"],
        )
        snap = SnapshotBuilder().assemble(fixed_now, [], [reading])
        state = build_advisor_state(snap)
        assert set(state.sorter_1) == {"Y"}
        assert state.sorter_2 == {}

    def test_only_sorters_one_and_two(self, fixed_now):
        reading = ChartReading(
            sorter_id=3, captured_at=fixed_now,
            percentage_by_sku={"X": 10.0}, ordered_skus=["X"],
        )
        state = build_advisor_state(SnapshotBuilder().assemble(fixed_now, [], [reading]))
        assert state.sorter_1 == {} and state.sorter_2 == {}

    def test_lines_for_sku_case_insensitive_first_seen(self, fixed_now):
        assignments = [
            Assignment(salida=7, sku="X-a", sorter_id=1),
            Assignment(salida=3, sku="x-A", sorter_id=1),
            Assignment(salida=7, sku="X-A", sorter_id=1),
            Assignment(salida=4, sku="X-A", sorter_id=2),
        ]
        snap = SnapshotBuilder().assemble(fixed_now, assignments, [])
        assert lines_for_sku(snap, 1, "X-A") == [7, 3]
