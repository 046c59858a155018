"""
Sorter Monitor — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Execute action (monitor loop, single cycle, chart capture, advice).
  4. Report result to stdout.

Install and run::

    pip install -e .
    sorter-monitor --help
    sorter-monitor validate-config
    sorter-monitor run
    sorter-monitor run-once
    sorter-monitor capture-charts
    sorter-monitor advise
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="sorter-monitor",
    help="Fruit sorter assignment monitor: snapshots, change log and balance advice.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from sorter_monitor.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from sorter_monitor.utils.logging import configure_logging
    configure_logging(config.logging)


def _echo_cycle(result, coordinator, started_at: datetime) -> None:
    """Print the console report for one finished cycle."""
    from sorter_monitor.reporting.formatters import (
        format_advice,
        format_changes,
        format_cycle_header,
        format_stats,
    )

    typer.echo(format_cycle_header(result.cycle, result.timestamp))
    if result.status == "fetch_failed":
        typer.echo(f"[ERROR] {result.errors[0]}")
        return

    typer.echo(f"[OK] {result.snapshot.total_count} assignments fetched")
    if result.changed:
        typer.echo("CHANGES DETECTED")
        block = format_changes(result.changes)
        if block:
            typer.echo(block)
    elif result.first_capture:
        typer.echo("First data capture")
    else:
        typer.echo("[OK] No changes")

    if result.training_rows:
        typer.echo(f"[OK] {result.training_rows} rows exported to training_data.csv")
    for err in result.errors:
        typer.echo(f"[WARN] {err}")

    typer.echo(format_stats(
        result.snapshot,
        coordinator.history.total_snapshots,
        coordinator.clock() - started_at,
        coordinator.config.packing,
    ))
    if result.advice is not None:
        typer.echo(format_advice(result.advice, result.cycle))


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file (default: config/default.toml).",
    ),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Packing:          {config.packing.name} ({config.packing.fruit})")
    typer.echo(f"  Sorters / lines:  {config.packing.sorters} / {config.packing.lines}")
    typer.echo(f"  Assignments URL:  {config.packing.assignments_url}")
    typer.echo(f"  Interval:         {config.monitor.interval_seconds}s")
    typer.echo(f"  Capture charts:   {config.monitor.capture_charts}")
    typer.echo(f"  Data folder:      {config.data.folder}")
    typer.echo(f"  Advice every:     {config.monitor.advise_every} cycles")
    typer.echo(f"  Enrichment:       {config.advisor.enabled and bool(config.advisor.model)}")
    typer.echo(f"  Log level:        {config.logging.level}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("run")
def run(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
    max_cycles: Optional[int] = typer.Option(
        None,
        "--max-cycles",
        help="Stop after N cycles (default: run until Ctrl-C).",
    ),
) -> None:
    """Poll the assignment API every interval and record snapshots.

    Each cycle: fetch -> snapshot -> diff -> persist -> export -> advise.
    Failures are logged and the loop continues.  Ctrl-C stops the monitor
    before the next cycle.
    """
    from sorter_monitor.pipeline.cycle import CycleCoordinator
    from sorter_monitor.scheduler import IntervalScheduler

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    coordinator = CycleCoordinator.from_config(config)
    coordinator.load_state()
    started_at = coordinator.clock()

    typer.echo("=== Sorter assignment monitor ===")
    typer.echo(f"URL: {config.packing.assignments_url}")
    typer.echo(f"Interval: {config.monitor.interval_seconds}s")
    typer.echo(f"Data folder: {config.data.folder}")
    typer.echo(f"Chart capture: {config.monitor.capture_charts}")
    typer.echo("Press Ctrl+C to stop")
    typer.echo("=" * 60)

    scheduler = IntervalScheduler(
        coordinator.run_cycle,
        interval_seconds=config.monitor.interval_seconds,
        max_cycles=max_cycles,
        on_result=lambda result: _echo_cycle(result, coordinator, started_at),
    )
    try:
        cycles = scheduler.start()
    finally:
        coordinator.close()
    typer.echo(f"[OK] Monitor stopped after {cycles} cycles.")


@app.command("run-once")
def run_once(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
    advise: bool = typer.Option(
        False,
        "--advise",
        help="Force an advisory pass on this cycle.",
    ),
) -> None:
    """Run a single monitoring cycle and print its report.

    Exits with code 1 if the assignment fetch fails.
    """
    from sorter_monitor.pipeline.cycle import CycleCoordinator

    config = _load_config_or_exit(config_path)
    if advise:
        config = config.model_copy(
            update={"monitor": config.monitor.model_copy(update={"advise_every": 1})}
        )
    _configure_logging(config)

    coordinator = CycleCoordinator.from_config(config)
    coordinator.load_state()
    started_at = coordinator.clock()

    try:
        result = coordinator.run_cycle(1)
    finally:
        coordinator.close()
    _echo_cycle(result, coordinator, started_at)
    if result.status == "fetch_failed":
        raise typer.Exit(code=1)


@app.command("capture-charts")
def capture_charts(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
    output: str = typer.Option(
        "chart_data_captured.json",
        "--output",
        "-o",
        help="Where to write the captured readings as JSON.",
    ),
) -> None:
    """Read every sorter's chart once, print a summary, and save it as JSON.

    Exits with code 1 if no sorter could be read.
    """
    from sorter_monitor.ingestion.chart_reader import build_chart_reader
    from sorter_monitor.reporting.formatters import format_chart_summary

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    reader = build_chart_reader(config, force=True)
    typer.echo("=== Capturing chart data for all sorters ===")
    try:
        readings = reader.read_all(config.packing.sorter_ids)
    finally:
        reader.close()

    if not readings:
        typer.echo("[ERROR] Could not read any sorter chart.", err=True)
        raise typer.Exit(code=1)

    for reading in readings:
        typer.echo("")
        typer.echo(format_chart_summary(reading))

    out_path = Path(output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(
        json.dumps([r.model_dump(mode="json") for r in readings], indent=2),
        encoding="utf-8",
    )
    typer.echo(f"\n[OK] Data saved to: {out_path}")


@app.command("advise")
def advise(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Path to TOML config file.",
    ),
    snapshot_path: Optional[str] = typer.Option(
        None,
        "--snapshot",
        help="Snapshot JSON to analyse (default: newest snapshot in the data folder).",
    ),
) -> None:
    """Print balance advice for a saved snapshot.

    Without ``--snapshot`` the newest entry of dataset.json is used, then
    current_snapshot.json.  Exits with code 1 if no snapshot can be read.
    """
    from pydantic import ValidationError

    from sorter_monitor.advisor.advisor import ImbalanceAdvisor
    from sorter_monitor.advisor.enrichment import build_text_generator
    from sorter_monitor.advisor.imbalance import build_advisor_state
    from sorter_monitor.persistence.store import SnapshotStore
    from sorter_monitor.reporting.formatters import format_advice
    from sorter_monitor.utils.time_utils import now_local

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    store = SnapshotStore(config.data)
    if snapshot_path:
        path = Path(snapshot_path)
        snapshot = None
    else:
        path = config.data.current_snapshot_file
        snapshot = store.load_history(now_local()).latest

    if snapshot is None:
        try:
            snapshot = store.load_current_snapshot(path)
        except FileNotFoundError:
            typer.echo(f"[ERROR] Snapshot not found: {path}", err=True)
            raise typer.Exit(code=1)
        except ValidationError as exc:
            typer.echo(f"[ERROR] Not a valid snapshot: {path} ({exc.error_count()} errors)", err=True)
            raise typer.Exit(code=1)

    advisor = ImbalanceAdvisor(
        threshold=config.advisor.threshold_pct,
        text_generator=build_text_generator(config.advisor),
    )
    typer.echo(format_advice(advisor.advise(build_advisor_state(snapshot))))


if __name__ == "__main__":
    app()
