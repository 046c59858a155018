"""Interval scheduler that drives the monitoring cycle.

No external scheduler library is required — uses stdlib ``threading``,
``signal`` and ``time`` only.

Typical usage via the CLI::

    sorter-monitor run

Or import directly::

    from sorter_monitor.scheduler import IntervalScheduler
    scheduler = IntervalScheduler(coordinator.run_cycle, interval_seconds=30)
    scheduler.start()  # blocks until Ctrl-C / SIGTERM / stop()

Behaviour:
  - The first cycle runs immediately; the next starts ``interval_seconds``
    after the previous one *finished*, so cycles never overlap.
  - The wait is on a ``threading.Event``: ``stop()`` (or a signal) ends the
    wait at once instead of sleeping out the interval.
  - A cycle that raises is logged; the scheduler carries on with the next.
  - An in-flight cycle is never interrupted; stop takes effect before the
    next one starts.
"""

from __future__ import annotations

import logging
import platform
import signal
import threading
import time
from typing import Any, Callable, Optional

log = logging.getLogger(__name__)


class IntervalScheduler:
    """Invokes ``job(cycle_number)`` every ``interval_seconds``.

    Parameters
    ----------
    job:
        Callable taking the 1-based cycle number.  Its return value is
        passed to ``on_result`` when given.
    interval_seconds:
        Pause between the end of one cycle and the start of the next.
    max_cycles:
        Stop after this many cycles.  ``None`` runs until stopped.
    on_result:
        Optional callback receiving each job's return value.
    """

    def __init__(
        self,
        job: Callable[[int], Any],
        interval_seconds: float,
        max_cycles: Optional[int] = None,
        on_result: Optional[Callable[[Any], None]] = None,
    ) -> None:
        self.job = job
        self.interval_seconds = interval_seconds
        self.max_cycles = max_cycles
        self.on_result = on_result
        self.cycles_run = 0
        self._stop = threading.Event()

    # ── Control ───────────────────────────────────────────────────────────────

    def stop(self) -> None:
        """Ask the loop to exit before the next cycle."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def _install_signal_handlers(self) -> None:
        def _shutdown(signum, frame):  # noqa: ANN001
            log.info("Signal %d received — stopping scheduler.", signum)
            self.stop()

        signal.signal(signal.SIGINT, _shutdown)
        if platform.system() != "Windows":
            signal.signal(signal.SIGTERM, _shutdown)

    # ── Main loop ─────────────────────────────────────────────────────────────

    def run_once(self) -> Any:
        """Run the next cycle now; exceptions are logged, not raised."""
        self.cycles_run += 1
        cycle = self.cycles_run
        started = time.monotonic()
        try:
            outcome = self.job(cycle)
        except Exception as exc:
            log.error("Cycle #%d raised: %s", cycle, exc, exc_info=True, extra={"cycle": cycle})
            return None
        log.debug("Cycle #%d finished in %.2f s", cycle, time.monotonic() - started)
        if self.on_result is not None:
            self.on_result(outcome)
        return outcome

    def start(self, install_signal_handlers: bool = True) -> int:
        """Run cycles until stopped or ``max_cycles`` is reached.

        Args:
            install_signal_handlers: Hook SIGINT/SIGTERM to ``stop()``.  Only
                valid from the main thread.

        Returns:
            Number of cycles run.
        """
        if install_signal_handlers:
            self._install_signal_handlers()

        log.info("Scheduler started.  interval=%ss  max_cycles=%s",
                 self.interval_seconds, self.max_cycles)

        while not self._stop.is_set():
            self.run_once()
            if self.max_cycles is not None and self.cycles_run >= self.max_cycles:
                break
            log.debug("Next cycle in %s s", self.interval_seconds)
            self._stop.wait(self.interval_seconds)

        log.info("Scheduler stopped after %d cycles.", self.cycles_run)
        return self.cycles_run
