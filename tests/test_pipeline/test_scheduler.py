"""
Tests for sorter_monitor.scheduler.IntervalScheduler.

Signal handlers are never installed here (tests may not run on the main
thread); the loop is bounded with ``max_cycles`` or ``stop()``.
"""

from __future__ import annotations

import threading

from sorter_monitor.scheduler import IntervalScheduler


class TestIntervalScheduler:
    def test_runs_max_cycles_with_cycle_numbers(self):
        seen: list[int] = []
        scheduler = IntervalScheduler(seen.append, interval_seconds=0, max_cycles=3)
        assert scheduler.start(install_signal_handlers=False) == 3
        assert seen == [1, 2, 3]

    def test_job_exception_does_not_stop_loop(self):
        seen: list[int] = []

        def job(cycle: int) -> int:
            seen.append(cycle)
            if cycle == 1:
                raise RuntimeError("boom")
            return cycle

        scheduler = IntervalScheduler(job, interval_seconds=0, max_cycles=2)
        assert scheduler.start(install_signal_handlers=False) == 2
        assert seen == [1, 2]

    def test_on_result_receives_return_value(self):
        results: list[str] = []
        scheduler = IntervalScheduler(
            lambda c: f"cycle-{c}", interval_seconds=0, max_cycles=2, on_result=results.append
        )
        scheduler.start(install_signal_handlers=False)
        assert results == ["cycle-1", "cycle-2"]

    def test_on_result_skipped_when_job_raises(self):
        results: list = []

        def job(cycle: int):
            raise ValueError("bad")

        scheduler = IntervalScheduler(job, interval_seconds=0, on_result=results.append)
        assert scheduler.run_once() is None
        assert results == []
        assert scheduler.cycles_run == 1

    def test_stop_from_job_ends_loop(self):
        scheduler: IntervalScheduler

        def job(cycle: int) -> None:
            if cycle == 2:
                scheduler.stop()

        scheduler = IntervalScheduler(job, interval_seconds=0)
        assert scheduler.start(install_signal_handlers=False) == 2
        assert scheduler.stopped

    def test_stop_interrupts_wait(self):
        scheduler = IntervalScheduler(lambda c: None, interval_seconds=3600)
        timer = threading.Timer(0.05, scheduler.stop)
        timer.start()
        try:
            assert scheduler.start(install_signal_handlers=False) == 1
        finally:
            timer.cancel()

    def test_stopped_before_start_runs_nothing(self):
        scheduler = IntervalScheduler(lambda c: None, interval_seconds=0)
        scheduler.stop()
        assert scheduler.start(install_signal_handlers=False) == 0
