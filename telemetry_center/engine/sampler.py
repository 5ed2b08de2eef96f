"""Periodic metric sampling into a rolling series."""

from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict, deque
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Callable, Deque

from telemetry_center.core import SAMPLING, PeriodicTask
from telemetry_center.data.collector import MetricCollector
from telemetry_center.models import MetricSample

from .store import RollingSeriesStore

logger = logging.getLogger(__name__)

_CAPABILITIES = (
    ("cpu", "read_cpu"),
    ("memory", "read_memory"),
    ("disk", "read_disk"),
    ("network", "read_network"),
)


class MetricSampler:
    """Reads a collector, tolerating per-capability failures, and feeds a store."""

    def __init__(
        self,
        collector: MetricCollector,
        store: RollingSeriesStore,
        *,
        interval: float = SAMPLING.system_interval_ms / 1000,
        timeout: float = SAMPLING.collector_timeout_seconds,
        clock: Callable[[], float] = time.time,
        name: str = "system",
    ) -> None:
        self._collector = collector
        self._store = store
        self._interval = interval
        self._timeout = timeout
        self._clock = clock
        self._name = name
        self._lock = threading.RLock()
        # One worker per capability: a hung read only ever holds its own thread.
        self._executors = {
            key: ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"sampler-{name}-{key}")
            for key, _ in _CAPABILITIES
        }
        self._pending: dict[str, Future[Any]] = {}
        self._task: PeriodicTask | None = None
        self._provider_failures: defaultdict[str, int] = defaultdict(int)
        self._errors: Deque[dict[str, Any]] = deque(maxlen=SAMPLING.error_log_size)
        self._diagnostics: dict[str, Any] = {
            "last_run_started": None,
            "last_run_duration": 0.0,
            "last_success_at": None,
            "consecutive_failures": 0,
            "last_error": None,
        }

    @property
    def store(self) -> RollingSeriesStore:
        return self._store

    @property
    def interval(self) -> float:
        return self._interval

    def start(self) -> None:
        with self._lock:
            if self._task and self._task.is_running():
                return
            self._task = PeriodicTask(self.sample, self._interval, name=f"MetricSampler-{self._name}")
            self._task.start()

    def stop(self, timeout: float | None = None) -> None:
        with self._lock:
            task, self._task = self._task, None
        if task:
            task.stop(timeout=timeout)

    def close(self) -> None:
        self.stop()
        for executor in self._executors.values():
            executor.shutdown(wait=False, cancel_futures=True)

    def is_running(self) -> bool:
        task = self._task
        return bool(task and task.is_running())

    def sample(self) -> MetricSample:
        """Take one sample and push it into the store when anything was read."""

        started = time.perf_counter()
        timestamp = self._clock()
        futures: dict[str, Future[Any]] = {}
        values: dict[str, Any] = {}
        with self._lock:
            for key, method in _CAPABILITIES:
                previous = self._pending.get(key)
                if previous is not None and not previous.done():
                    logger.warning("Colector '%s' sigue ocupado con la lectura anterior", key)
                    self._count_failure(key, "previous read still running", "CollectorFailure")
                    values[key] = None
                    continue
                future = self._executors[key].submit(getattr(self._collector, method))
                futures[key] = self._pending[key] = future
        for key, future in futures.items():
            values[key] = self._safe_result(key, future)

        sample = MetricSample(
            timestamp=timestamp,
            cpu_usage=_as_percent(values["cpu"]),
            memory_usage=_as_percent(values["memory"]),
            disk_usage=_as_disk(values["disk"]),
            network=values["network"],
        )
        duration = time.perf_counter() - started

        if sample.is_empty():
            self._record_error("all", "Ningún colector devolvió datos", timestamp)
            self._update_diagnostics(success=False, duration=duration)
            return sample

        try:
            self._store.append(sample)
        except ValueError as exc:
            self._record_error("store", str(exc), timestamp)
            self._update_diagnostics(success=False, duration=duration)
            return sample
        self._update_diagnostics(success=True, duration=duration)
        return sample

    def diagnostics(self) -> dict[str, Any]:
        with self._lock:
            return {
                **self._diagnostics,
                "interval_seconds": self._interval,
                "running": self.is_running(),
                "provider_failures": dict(self._provider_failures),
                "recent_errors": list(self._errors),
            }

    def _safe_result(self, key: str, future: Any) -> Any:
        try:
            return future.result(timeout=self._timeout)
        except FutureTimeout:
            future.cancel()
            logger.warning("Colector '%s' excedió %.1fs", key, self._timeout)
            self._count_failure(key, f"timeout after {self._timeout}s", "TimeoutError")
        except Exception as exc:
            logger.exception("Colector '%s' falló durante el muestreo", key, exc_info=exc)
            self._count_failure(key, str(exc), exc.__class__.__name__)
        return None

    def _count_failure(self, key: str, message: str, error_type: str) -> None:
        with self._lock:
            self._provider_failures[key] += 1
            self._diagnostics["last_error"] = {
                "provider": key,
                "message": message,
                "type": error_type,
                "timestamp": self._clock(),
            }

    def _record_error(self, provider: str, message: str, timestamp: float) -> None:
        logger.error("Muestra descartada (%s): %s", provider, message)
        with self._lock:
            self._errors.append({"provider": provider, "message": message, "timestamp": timestamp})

    def _update_diagnostics(self, *, success: bool, duration: float) -> None:
        now = self._clock()
        with self._lock:
            self._diagnostics["last_run_started"] = now - duration
            self._diagnostics["last_run_duration"] = duration
            if success:
                self._diagnostics["last_success_at"] = now
                self._diagnostics["consecutive_failures"] = 0
            else:
                self._diagnostics["consecutive_failures"] += 1


def _as_percent(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_disk(value: Any) -> float | tuple[Any, ...] | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return tuple(value) or None
    return _as_percent(value)
