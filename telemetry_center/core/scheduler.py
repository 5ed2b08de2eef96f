"""Cancellable periodic jobs running on daemon threads."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run ``action`` every ``interval`` seconds until stopped.

    Cancellation is cooperative: ``stop()`` sets an event that the loop checks
    between runs, so an action that is already executing always completes.
    ``reschedule()`` changes the period of a running task without starting a
    second thread.
    """

    def __init__(
        self,
        action: Callable[[], Any],
        interval: float,
        *,
        name: str = "PeriodicTask",
        run_immediately: bool = True,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._action = action
        self._interval = float(interval)
        self._name = name
        self._run_immediately = run_immediately
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self.runs = 0
        self.failures = 0
        self.last_error: str | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def name(self) -> str:
        return self._name

    def is_running(self) -> bool:
        thread = self._thread
        return bool(thread and thread.is_alive() and not self._stop.is_set())

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            self._stop.clear()
            self._wake.clear()
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        self._wake.set()
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None

    def reschedule(self, interval: float) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = float(interval)
        self._wake.set()

    def _run(self) -> None:
        if not self._run_immediately and self._sleep(self._interval):
            return
        while not self._stop.is_set():
            start_time = time.perf_counter()
            try:
                self._action()
            except Exception as exc:
                self.failures += 1
                self.last_error = f"{exc.__class__.__name__}: {exc}"
                logger.exception("Tarea periódica '%s' falló", self._name, exc_info=exc)
            finally:
                self.runs += 1
            elapsed = time.perf_counter() - start_time
            if self._sleep(max(0.0, self._interval - elapsed)):
                return

    def _sleep(self, delay: float) -> bool:
        """Wait for ``delay`` seconds; return True when the task was stopped."""

        self._wake.clear()
        deadline = time.monotonic() + delay
        while not self._stop.is_set():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            if self._wake.wait(remaining):
                self._wake.clear()
                if self._stop.is_set():
                    return True
                # Interval changed: recompute the deadline from now.
                deadline = time.monotonic() + self._interval
        return True
