"""PeriodicTask lifecycle."""

from __future__ import annotations

import threading

import pytest

from telemetry_center.core import PeriodicTask


class TestPeriodicTask:
    def test_runs_until_stopped(self):
        ran = threading.Event()
        task = PeriodicTask(ran.set, 0.01, name="test-task")
        task.start()
        try:
            assert ran.wait(2.0)
            assert task.is_running()
        finally:
            task.stop(timeout=2.0)
        assert not task.is_running()
        assert task.runs >= 1

    def test_failing_action_keeps_running(self):
        calls = []
        second_call = threading.Event()

        def flaky() -> None:
            calls.append(1)
            if len(calls) >= 2:
                second_call.set()
            raise RuntimeError("boom")

        task = PeriodicTask(flaky, 0.01)
        task.start()
        try:
            assert second_call.wait(2.0)
        finally:
            task.stop(timeout=2.0)
        assert task.failures >= 2
        assert task.last_error == "RuntimeError: boom"

    def test_reschedule_wakes_a_long_sleep(self):
        ran = threading.Event()
        task = PeriodicTask(ran.set, 3600, run_immediately=False)
        task.start()
        try:
            assert not ran.wait(0.05)
            task.reschedule(0.01)
            assert ran.wait(2.0)
            assert task.interval == pytest.approx(0.01)
        finally:
            task.stop(timeout=2.0)

    def test_stop_interrupts_sleep(self):
        task = PeriodicTask(lambda: None, 3600)
        task.start()
        task.stop(timeout=2.0)
        assert not task.is_running()

    def test_start_twice_keeps_one_thread(self):
        task = PeriodicTask(lambda: None, 3600, name="single-thread")
        task.start()
        try:
            task.start()
            names = [thread.name for thread in threading.enumerate()]
            assert names.count("single-thread") == 1
        finally:
            task.stop(timeout=2.0)

    @pytest.mark.parametrize("interval", [0, -1])
    def test_rejects_non_positive_interval(self, interval):
        with pytest.raises(ValueError):
            PeriodicTask(lambda: None, interval)
        task = PeriodicTask(lambda: None, 1)
        with pytest.raises(ValueError):
            task.reschedule(interval)
