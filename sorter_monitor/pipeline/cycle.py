"""
Cycle coordination for the sorter monitor.

The ``CycleCoordinator`` runs one monitoring cycle in a fixed, testable
sequence:

  Step 1 — Fetch:     Assignment list from the plant API.
  Step 2 — Build:     DataSnapshot (counts + chart readings + distributions).
  Step 3 — Diff:      ``has_changes`` against the last assignments.  On a
                      change (or when there is no previous list): log the
                      keyed ChangeSet, write current_snapshot.json and
                      last_assignments.json, remember the new list.
  Step 4 — History:   Append the snapshot, rewrite dataset.json + daily mirror.
  Step 5 — Export:    Append training_data.csv rows (only with chart data).
  Step 6 — Advise:    Every Nth cycle, when >= 2 sorters have chart data.

Failure isolation
-----------------
- Fetch failure:        Cycle aborted (``status="fetch_failed"``); state untouched.
- Chart read failure:   Handled inside the builder; snapshot has fewer sorters.
- Persistence failure:  Logged per file, recorded in ``errors``; in-memory
                        state still advances (``status="partial"``).
- Advisor failure:      Logged; no advice this cycle.

The coordinator exclusively owns ``last_assignments`` and ``history``.
Scheduling lives in ``sorter_monitor.scheduler``; ``run_cycle()`` is a
self-contained call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from sorter_monitor.advisor.advisor import ImbalanceAdvisor
from sorter_monitor.advisor.enrichment import build_text_generator
from sorter_monitor.advisor.imbalance import build_advisor_state
from sorter_monitor.config import AppConfig
from sorter_monitor.errors import AssignmentFetchError, PersistenceError
from sorter_monitor.ingestion.assignments_client import AssignmentsClient
from sorter_monitor.ingestion.chart_reader import build_chart_reader
from sorter_monitor.models.advice import Advice
from sorter_monitor.models.assignment import Assignment, ChangeLogEntry, ChangeSet
from sorter_monitor.models.snapshot import DataSnapshot, SnapshotHistory
from sorter_monitor.persistence.store import SnapshotStore
from sorter_monitor.persistence.training_export import append_training_rows
from sorter_monitor.snapshot.builder import SnapshotBuilder
from sorter_monitor.snapshot.changes import detect_changes, format_change_summary, has_changes
from sorter_monitor.utils.time_utils import format_display, now_local

logger = logging.getLogger(__name__)

MIN_SORTERS_FOR_ADVICE = 2


# ── Result type ───────────────────────────────────────────────────────────────


@dataclass
class CycleResult:
    """Outcome of one monitoring cycle.

    Attributes:
        cycle:          1-based cycle number.
        timestamp:      Cycle timestamp, ``YYYY-MM-DD HH:MM:SS``.
        status:         ``"success"``, ``"partial"`` or ``"fetch_failed"``.
        snapshot:       Snapshot built this cycle (None on fetch failure).
        first_capture:  No previous assignment list existed.
        changed:        ``has_changes`` reported a change.
        changes:        Keyed ChangeSet when ``changed``.
        training_rows:  Rows appended to the training CSV.
        advice:         Advice issued this cycle, if any.
        errors:         Accumulated error messages.
    """

    cycle:          int
    timestamp:      str
    status:         str                 = "started"
    snapshot:       Optional[DataSnapshot] = None
    first_capture:  bool                = False
    changed:        bool                = False
    changes:        Optional[ChangeSet] = None
    training_rows:  int                 = 0
    advice:         Optional[Advice]    = None
    errors:         list[str]           = field(default_factory=list)


# ── Coordinator ───────────────────────────────────────────────────────────────


class CycleCoordinator:
    """Runs monitoring cycles and owns the cross-cycle state.

    Args:
        config:      AppConfig for this process.
        client:      Assignment source.
        builder:     Snapshot builder (with its chart reader).
        store:       JSON file store.
        advisor:     Imbalance advisor.
        clock:       Returns "now"; injectable for tests.
    """

    def __init__(
        self,
        config: AppConfig,
        client: AssignmentsClient,
        builder: SnapshotBuilder,
        store: SnapshotStore,
        advisor: ImbalanceAdvisor,
        clock: Callable[[], datetime] = now_local,
    ) -> None:
        self.config = config
        self.client = client
        self.builder = builder
        self.store = store
        self.advisor = advisor
        self.clock = clock

        self.last_assignments: list[Assignment] = []
        self.history: SnapshotHistory = SnapshotHistory.empty(clock())

    @classmethod
    def from_config(cls, config: AppConfig) -> "CycleCoordinator":
        """Wire real collaborators from ``config``."""
        chart_reader = build_chart_reader(config)
        return cls(
            config=config,
            client=AssignmentsClient(
                config.packing.assignments_url,
                timeout_s=config.monitor.request_timeout_s,
            ),
            builder=SnapshotBuilder(chart_reader, config.packing.sorter_ids),
            store=SnapshotStore(config.data),
            advisor=ImbalanceAdvisor(
                threshold=config.advisor.threshold_pct,
                text_generator=build_text_generator(config.advisor),
            ),
        )

    def load_state(self) -> None:
        """Create the data folder and restore history + last assignments."""
        try:
            self.store.ensure_folder()
        except PersistenceError as exc:
            logger.error("Data folder unavailable: %s", exc)
        self.history = self.store.load_history(self.clock())
        self.last_assignments = self.store.load_last_assignments()
        logger.info(
            "State loaded: %d snapshots, %d last assignments",
            self.history.total_snapshots, len(self.last_assignments),
        )

    def close(self) -> None:
        """Release the HTTP client and the chart reader's browser."""
        self.client.close()
        self.builder.chart_reader.close()

    # ── One cycle ─────────────────────────────────────────────────────────────

    def run_cycle(self, cycle: int) -> CycleResult:
        now = self.clock()
        result = CycleResult(cycle=cycle, timestamp=format_display(now))
        ctx = {"cycle": cycle}

        # ── Step 1: Fetch ─────────────────────────────────────────────────────
        try:
            current = self.client.fetch_assignments()
        except AssignmentFetchError as exc:
            logger.error("Fetch failed, skipping cycle: %s", exc, extra={**ctx, "operation": "fetch"})
            result.status = "fetch_failed"
            result.errors.append(f"fetch: {exc}")
            return result
        logger.info("[1/6] Fetched %d assignments", len(current), extra=ctx)

        # ── Step 2: Build ─────────────────────────────────────────────────────
        snapshot = self.builder.build(now, current, cycle=cycle)
        result.snapshot = snapshot
        logger.debug(
            "[2/6] Snapshot built: %d sorters with chart data", len(snapshot.chart_data),
            extra=ctx,
        )

        # ── Step 3: Diff + persist on change ──────────────────────────────────
        result.changed = has_changes(self.last_assignments, current)
        result.first_capture = not self.last_assignments
        if result.changed or result.first_capture:
            if result.changed:
                result.changes = detect_changes(self.last_assignments, current)
                summary = format_change_summary(result.changes)
                logger.info("[3/6] Changes detected: %s", summary, extra=ctx)
                self._persist(
                    result, "changes_log",
                    lambda: self.store.append_change(ChangeLogEntry(
                        timestamp=result.timestamp,
                        added=result.changes.added,
                        removed=result.changes.removed,
                        modified=result.changes.modified,
                        description=summary,
                    ), now),
                )
            else:
                logger.info("[3/6] First capture", extra=ctx)
            self._persist(result, "current_snapshot", lambda: self.store.save_current_snapshot(snapshot))
            self._persist(result, "last_assignments", lambda: self.store.save_last_assignments(current))
            self.last_assignments = current
        else:
            logger.info("[3/6] No changes", extra=ctx)

        # ── Step 4: History ───────────────────────────────────────────────────
        self.history.append(snapshot)
        self._persist(result, "dataset", lambda: self.store.save_history(self.history, now))
        logger.debug("[4/6] History: %d snapshots", self.history.total_snapshots, extra=ctx)

        # ── Step 5: Training export ───────────────────────────────────────────
        if snapshot.has_chart_data:
            try:
                result.training_rows = append_training_rows(
                    self.store.config.training_csv_file, snapshot
                )
                logger.info("[5/6] %d training rows exported", result.training_rows, extra=ctx)
            except PersistenceError as exc:
                self._record_persistence_error(result, "training_csv", exc)

        # ── Step 6: Advise ────────────────────────────────────────────────────
        if self.should_advise(cycle, snapshot):
            try:
                result.advice = self.advisor.advise(build_advisor_state(snapshot))
                logger.info(
                    "[6/6] Advice: %s %s", result.advice.action.value, result.advice.reason,
                    extra={**ctx, "operation": "advise"},
                )
            except Exception as exc:
                logger.error("Advisor failed: %s", exc, extra={**ctx, "operation": "advise"})
                result.errors.append(f"advise: {exc}")

        result.status = "success" if not result.errors else "partial"
        return result

    def should_advise(self, cycle: int, snapshot: DataSnapshot) -> bool:
        return (
            cycle % self.config.monitor.advise_every == 0
            and len(snapshot.chart_data) >= MIN_SORTERS_FOR_ADVICE
        )

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _persist(self, result: CycleResult, label: str, write: Callable[[], object]) -> None:
        try:
            write()
        except PersistenceError as exc:
            self._record_persistence_error(result, label, exc)

    @staticmethod
    def _record_persistence_error(result: CycleResult, label: str, exc: PersistenceError) -> None:
        logger.warning(
            "Could not persist %s: %s", label, exc,
            extra={"cycle": result.cycle, "operation": f"persist_{label}"},
        )
        result.errors.append(f"{label}: {exc}")
