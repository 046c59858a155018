"""
Plain-text terminal formatters for the monitor CLI.

All formatters accept domain objects and return multi-line strings suitable
for ``typer.echo()``.  None of them print or log.

No third-party dependencies (no ``rich``, no ``colorama``).

Per-sorter SKU lists follow the chart's display order; global and per-line
tables are sorted by SKU so consecutive cycles line up visually.
"""

from __future__ import annotations

from datetime import timedelta

from sorter_monitor.config import PackingConfig
from sorter_monitor.models.advice import Advice, AdviceAction
from sorter_monitor.models.assignment import ChangeSet
from sorter_monitor.models.chart import ChartReading
from sorter_monitor.models.snapshot import DataSnapshot
from sorter_monitor.utils.time_utils import format_iso

_RULE = "-" * 60
_DOUBLE_RULE = "=" * 49


# ── Cycle ─────────────────────────────────────────────────────────────────────


def format_cycle_header(cycle: int, timestamp: str) -> str:
    return f"\n[{timestamp}] Check #{cycle}"


def format_changes(changes: ChangeSet) -> str:
    """Added / removed / modified blocks; empty string for an empty set."""
    lines: list[str] = []
    if changes.added:
        lines.append(f"\n+ Added ({len(changes.added)}):")
        for a in changes.added:
            lines.append(f"   Sorter {a.sorter_id}: {a.sku} -> Line {a.output_line}")
    if changes.removed:
        lines.append(f"\n- Removed ({len(changes.removed)}):")
        for a in changes.removed:
            lines.append(f"   Sorter {a.sorter_id}: {a.sku} (was Line {a.output_line})")
    if changes.modified:
        lines.append(f"\n~ Modified ({len(changes.modified)}):")
        for m in changes.modified:
            lines.append(
                f"   Sorter {m.new.sorter_id}: {m.new.sku} - "
                f"Line {m.old.output_line} -> {m.new.output_line}"
            )
    return "\n".join(lines)


# ── Stats ─────────────────────────────────────────────────────────────────────


def _line_ids(snapshot: DataSnapshot, packing: PackingConfig) -> list[int]:
    if packing.lines > 0:
        return list(range(1, packing.lines + 1))
    return sorted(set(snapshot.by_output_line) | set(snapshot.sku_by_output_line))


def format_stats(
    snapshot: DataSnapshot,
    total_snapshots: int,
    uptime: timedelta,
    packing: PackingConfig,
) -> str:
    """Collection statistics block shown after each cycle."""
    lines = [
        "",
        _RULE,
        "Collection statistics:",
        f"  * Total snapshots: {total_snapshots}",
        f"  * Uptime: {timedelta(seconds=round(uptime.total_seconds()))}",
        f"  * Current assignments: {snapshot.total_count}",
    ]

    if snapshot.by_sorter:
        counts = [
            f"Sorter {s}={snapshot.by_sorter[s]}"
            for s in packing.sorter_ids
            if s in snapshot.by_sorter
        ]
        lines.append("  * By sorter: " + " ".join(counts))

    if snapshot.by_output_line:
        counts = [
            f"L{line}={snapshot.by_output_line[line]}"
            for line in _line_ids(snapshot, packing)
            if line in snapshot.by_output_line
        ]
        lines.append("  * By line: " + " ".join(counts))

    if snapshot.global_percent:
        lines.append("\n  * Global distribution (sorter average):")
        for sku in sorted(snapshot.global_percent):
            lines.append(f"    - {sku}: {snapshot.global_percent[sku]:.0f}%")

    if snapshot.chart_data:
        lines.append("\n  * Distribution by sorter (chart data):")
        for sorter_id in packing.sorter_ids:
            reading = snapshot.chart_data.get(sorter_id)
            if reading is None:
                continue
            lines.append(f"    Sorter {sorter_id}:")
            shares = snapshot.sku_by_sorter.get(sorter_id, {})
            for sku in reading.ordered_skus:
                if sku in shares:
                    lines.append(f"      {sku}: {shares[sku].percentage:.0f}%")

    if snapshot.sku_by_output_line:
        lines.append("\n  * Distribution by line:")
        for line in _line_ids(snapshot, packing):
            shares = snapshot.sku_by_output_line.get(line)
            if not shares:
                continue
            lines.append(f"    Line {line}:")
            for sku in sorted(shares):
                lines.append(f"      {sku}: {shares[sku].percentage:.0f}%")

    lines.append(_RULE)
    return "\n".join(lines)


# ── Advice ────────────────────────────────────────────────────────────────────


def format_advice(advice: Advice, cycle: int | None = None) -> str:
    header = "\nBALANCE ANALYSIS" + (f" (check #{cycle})" if cycle is not None else "")
    lines = [header, _DOUBLE_RULE]
    if advice.action is AdviceAction.HOLD:
        lines.append(f"[OK] {advice.reason}")
        return "\n".join(lines)

    lines += [
        "OPTIMISATION SUGGESTION",
        _DOUBLE_RULE,
        f"SKU: {advice.sku}",
        f"Move: Sorter {advice.from_sorter} -> Sorter {advice.to_sorter}",
        f"Reason: {advice.reason}",
        f"Issued: {format_iso(advice.issued_at)}",
        _DOUBLE_RULE,
    ]
    return "\n".join(lines)


# ── Chart capture ─────────────────────────────────────────────────────────────


def format_chart_summary(reading: ChartReading) -> str:
    """Per-sorter summary with calibre rollup and SKU detail."""
    lines = [
        f"Sorter {reading.sorter_id} - {reading.captured_at.strftime('%H:%M:%S')}",
        f"Total SKUs: {reading.total_skus}",
        "Calibre distribution:",
    ]
    for name, pct in sorted(reading.calibre_distribution().items()):
        lines.append(f"  {name}: {pct:.1f}%")
    lines.append("SKU detail:")
    for sku, pct in reading.ordered_items():
        lines.append(f"  {sku}: {pct:.1f}%")
    return "\n".join(lines)
