"""Fixed-capacity, time-ordered buffer of metric samples."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Deque

from telemetry_center.core import HISTORY
from telemetry_center.models import MetricSample


class RollingSeriesStore:
    """Append-at-tail / evict-at-head series shared by one writer and many readers.

    Readers always receive tuples copied under the lock, so they never observe
    a sample list that is being mutated.
    """

    def __init__(
        self,
        capacity: int = HISTORY.capacity,
        *,
        name: str = "system",
        clock: Callable[[], float] = time.time,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.name = name
        self._capacity = capacity
        self._clock = clock
        self._samples: Deque[MetricSample] = deque(maxlen=capacity)
        self._lock = threading.RLock()
        self.evicted = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

    def append(self, sample: MetricSample) -> None:
        with self._lock:
            if self._samples and sample.timestamp < self._samples[-1].timestamp:
                raise ValueError(
                    f"sample at {sample.timestamp} is older than the series tail "
                    f"({self._samples[-1].timestamp})"
                )
            if len(self._samples) == self._capacity:
                self.evicted += 1
            self._samples.append(sample)

    def window(self, duration: float, now: float | None = None) -> tuple[MetricSample, ...]:
        """Samples with ``timestamp >= now - duration``, oldest first."""

        cutoff = (self._clock() if now is None else now) - duration
        with self._lock:
            return tuple(sample for sample in self._samples if sample.timestamp >= cutoff)

    def snapshot(self) -> tuple[MetricSample, ...]:
        with self._lock:
            return tuple(self._samples)

    def latest(self) -> MetricSample | None:
        with self._lock:
            return self._samples[-1] if self._samples else None

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()
