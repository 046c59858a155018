"""
File persistence for the monitor's JSON outputs.

File layout (``[data] folder``, default ``training_data/``)::

    training_data/
      dataset.json              full SnapshotHistory, rewritten every cycle
      snapshots_YYYYMMDD.json   same content, one mirror per calendar day
      current_snapshot.json     latest snapshot written on a change
      changes_log.json          append-only array of ChangeLogEntry
      last_assignments.json     latest raw assignment list (wire shape)

Assignments are written in wire shape (``salida``, ``sku``, ``sorter_id``)
so the files stay interchangeable with the plant API output.

Reads are forgiving: a missing or corrupt file yields empty state and a log
line.  Before appending to an unreadable change log the old file is renamed
to ``changes_log.corrupt-YYYYMMDD_HHMMSS.json``.  Writes raise
``PersistenceError``; the cycle coordinator logs it and keeps its in-memory
state.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from sorter_monitor.config import DataConfig
from sorter_monitor.errors import PersistenceError
from sorter_monitor.models.assignment import Assignment, ChangeLogEntry
from sorter_monitor.models.snapshot import DataSnapshot, SnapshotHistory
from sorter_monitor.utils.time_utils import day_stamp, now_local

logger = logging.getLogger(__name__)

_ASSIGNMENT_LIST = TypeAdapter(list[Assignment])
_CHANGE_LOG = TypeAdapter(list[ChangeLogEntry])

CORRUPT_STAMP_FORMAT = "%Y%m%d_%H%M%S"


def _write_json(path: Path, data: Any) -> Path:
    """Write ``data`` as pretty-printed JSON, creating parent dirs."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
    except OSError as exc:
        raise PersistenceError(f"Could not write {path.name}: {exc}", str(path)) from exc
    return path


class SnapshotStore:
    """Reads and writes the monitor's JSON files under ``config.folder``."""

    def __init__(self, config: DataConfig) -> None:
        self.config = config
        self.folder = Path(config.folder)

    def ensure_folder(self) -> None:
        try:
            self.folder.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Could not create data folder: {exc}", str(self.folder)) from exc

    def daily_file(self, when: datetime) -> Path:
        return self.folder / f"snapshots_{day_stamp(when)}.json"

    # ── History ───────────────────────────────────────────────────────────────

    def load_history(self, now: datetime) -> SnapshotHistory:
        """Load ``dataset.json``; missing or corrupt → a new empty history."""
        path = self.config.dataset_file
        if not path.exists():
            logger.info("Starting new dataset at %s", path)
            return SnapshotHistory.empty(now)
        try:
            history = SnapshotHistory.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.warning("Could not load dataset %s, starting new: %s", path, exc)
            return SnapshotHistory.empty(now)
        logger.info(
            "Dataset loaded: %d snapshots since %s",
            history.total_snapshots, history.collection_start.isoformat(timespec="seconds"),
        )
        return history

    def save_history(self, history: SnapshotHistory, now: datetime) -> list[Path]:
        """Write ``dataset.json`` and today's ``snapshots_YYYYMMDD.json`` mirror."""
        data = history.model_dump(mode="json", by_alias=True)
        return [
            _write_json(self.config.dataset_file, data),
            _write_json(self.daily_file(now), data),
        ]

    # ── Current snapshot ──────────────────────────────────────────────────────

    def save_current_snapshot(self, snapshot: DataSnapshot) -> Path:
        return _write_json(
            self.config.current_snapshot_file,
            snapshot.model_dump(mode="json", by_alias=True),
        )

    def load_current_snapshot(self, path: Optional[Path] = None) -> DataSnapshot:
        """Load ``current_snapshot.json`` (or another snapshot file at ``path``).

        Raises:
            FileNotFoundError: If no snapshot has been written yet.
            pydantic.ValidationError: If the file is not a snapshot.
        """
        path = path or self.config.current_snapshot_file
        return DataSnapshot.model_validate_json(path.read_text(encoding="utf-8"))

    # ── Last assignments ──────────────────────────────────────────────────────

    def load_last_assignments(self) -> list[Assignment]:
        path = self.config.last_assignments_file
        if not path.exists():
            return []
        try:
            return _ASSIGNMENT_LIST.validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.warning("Ignoring unreadable %s: %s", path.name, exc)
            return []

    def save_last_assignments(self, assignments: list[Assignment]) -> Path:
        return _write_json(
            self.config.last_assignments_file,
            _ASSIGNMENT_LIST.dump_python(assignments, mode="json", by_alias=True),
        )

    # ── Change log ────────────────────────────────────────────────────────────

    def _read_change_log(self) -> list[ChangeLogEntry]:
        path = self.config.changes_log_file
        if not path.exists():
            return []
        return _CHANGE_LOG.validate_json(path.read_text(encoding="utf-8"))

    def load_change_log(self) -> list[ChangeLogEntry]:
        path = self.config.changes_log_file
        try:
            return self._read_change_log()
        except (OSError, ValidationError) as exc:
            logger.warning("Change log %s unreadable: %s", path.name, exc)
            return []

    def _quarantine_change_log(self, now: datetime) -> Path:
        """Move the log aside as ``changes_log.corrupt-YYYYMMDD_HHMMSS.json``."""
        path = self.config.changes_log_file
        target = path.with_name(f"{path.stem}.corrupt-{now.strftime(CORRUPT_STAMP_FORMAT)}.json")
        try:
            path.replace(target)
        except OSError as exc:
            raise PersistenceError(f"Could not move aside {path.name}: {exc}", str(path)) from exc
        return target

    def append_change(self, entry: ChangeLogEntry, now: Optional[datetime] = None) -> Path:
        """Append ``entry`` to ``changes_log.json`` (read, append, rewrite).

        An existing log that cannot be parsed is renamed aside first, so
        earlier entries are never overwritten.
        """
        try:
            entries = self._read_change_log()
        except (OSError, ValidationError) as exc:
            target = self._quarantine_change_log(now or now_local())
            logger.warning(
                "Change log unreadable, moved to %s and starting a new one: %s",
                target.name, exc,
            )
            entries = []
        entries.append(entry)
        return _write_json(
            self.config.changes_log_file,
            _CHANGE_LOG.dump_python(entries, mode="json", by_alias=True),
        )
