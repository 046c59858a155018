"""
Shared pytest fixtures for the sorter monitor test suite.

Provides:
  - ``fixed_now``: A fixed, timezone-aware "now" for deterministic timestamps.
  - ``data_config``: A ``DataConfig`` rooted in the test's ``tmp_path``.
  - Sample domain object factories (assignments, chart readings, snapshots)
    for use in multiple test modules.
  - ``drip_stream`` / ``stepping_clock``: a slow response body and a fake
    deadline clock for the whole-request timeout tests.
"""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import httpx
import pytest

from sorter_monitor.config import DataConfig
from sorter_monitor.models.assignment import Assignment
from sorter_monitor.models.chart import ChartReading
from sorter_monitor.models.snapshot import DataSnapshot
from sorter_monitor.snapshot.builder import SnapshotBuilder

PLANT_TZ = timezone(timedelta(hours=-3))


# ── Time / config ─────────────────────────────────────────────────────────────

@pytest.fixture
def fixed_now() -> datetime:
    """2026-10-18 15:00:00 in the plant's UTC-3 zone."""
    return datetime(2026, 10, 18, 15, 0, 0, tzinfo=PLANT_TZ)


@pytest.fixture
def data_config(tmp_path) -> DataConfig:
    """DataConfig whose folder lives under ``tmp_path``."""
    return DataConfig(folder=str(tmp_path / "training_data"))


# ── Sample domain object factories ────────────────────────────────────────────

@pytest.fixture
def sample_assignments() -> list[Assignment]:
    """Five assignments across two sorters; one SKU runs on two lines."""
    return [
        Assignment(salida=2, sku="4J-D-SANTINA-C5WFTFG", sorter_id=1),
        Assignment(salida=5, sku="3J-D-LAPINS-C5WFTFG", sorter_id=1),
        Assignment(salida=7, sku="3J-D-LAPINS-C5WFTFG", sorter_id=1),
        Assignment(salida=2, sku="4J-D-SANTINA-C5WFTFG", sorter_id=2),
        Assignment(salida=9, sku="Descarte", sorter_id=2),
    ]


@pytest.fixture
def reading_sorter_1(fixed_now) -> ChartReading:
    return ChartReading(
        sorter_id=1,
        captured_at=fixed_now,
        percentage_by_sku={"4J-D-SANTINA-C5WFTFG": 12.3, "3J-D-LAPINS-C5WFTFG": 60.0},
        ordered_skus=["4J-D-SANTINA-C5WFTFG", "3J-D-LAPINS-C5WFTFG"],
    )


@pytest.fixture
def reading_sorter_2(fixed_now) -> ChartReading:
    return ChartReading(
        sorter_id=2,
        captured_at=fixed_now,
        percentage_by_sku={"4J-D-SANTINA-C5WFTFG": 20.0, "Descarte": 5.0},
        ordered_skus=["4J-D-SANTINA-C5WFTFG", "Descarte"],
    )


@pytest.fixture
def sample_snapshot(
    fixed_now, sample_assignments, reading_sorter_1, reading_sorter_2
) -> DataSnapshot:
    """Snapshot with chart data for both sorters."""
    return SnapshotBuilder().assemble(
        fixed_now, sample_assignments, [reading_sorter_1, reading_sorter_2]
    )


class FakeChartReader:
    """ChartReader stand-in returning canned readings by sorter id."""

    enabled = True

    def __init__(self, readings: dict[int, ChartReading]) -> None:
        self.readings = readings
        self.calls: list[list[int]] = []
        self.closed = False

    def read_all(self, sorter_ids: list[int]) -> list[ChartReading]:
        self.calls.append(list(sorter_ids))
        return [self.readings[s] for s in sorter_ids if s in self.readings]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_chart_reader(reading_sorter_1, reading_sorter_2) -> FakeChartReader:
    return FakeChartReader({1: reading_sorter_1, 2: reading_sorter_2})


# ── Slow HTTP bodies ──────────────────────────────────────────────────────────

class DripStream(httpx.SyncByteStream):
    """Response body served one byte per chunk; ``sent`` counts chunks read."""

    def __init__(self, body: bytes) -> None:
        self.body = body
        self.sent = 0

    def __iter__(self):
        for i in range(len(self.body)):
            self.sent += 1
            yield self.body[i : i + 1]


@pytest.fixture
def drip_stream():
    return DripStream


@pytest.fixture
def stepping_clock():
    """Deadline clock that advances 0.4 s on every reading."""
    with patch("sorter_monitor.utils.http.time") as fake_time:
        fake_time.monotonic.side_effect = itertools.count(0.0, 0.4)
        yield fake_time
