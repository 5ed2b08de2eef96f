"""Fire-and-forget storage of diagnosis feedback for later rule refinement."""

from __future__ import annotations

import json
import logging
import queue
import threading
import time
import uuid
from pathlib import Path
from typing import Any, Callable, Protocol

logger = logging.getLogger(__name__)

_STOP = object()


class FeedbackStore(Protocol):
    def write(self, entry: dict[str, Any]) -> None: ...


class JsonlFeedbackStore:
    """Appends one JSON document per line."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def write(self, entry: dict[str, Any]) -> None:
        line = json.dumps(entry, ensure_ascii=False)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


class FeedbackRecorder:
    """Accepts training signal without ever blocking or failing the caller."""

    def __init__(
        self,
        store: FeedbackStore,
        *,
        max_pending: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._clock = clock
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=max_pending)
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._idle = threading.Condition()
        self._pending = 0
        self.accepted = 0
        self.written = 0
        self.failed = 0
        self.dropped = 0

    def train(
        self,
        query: str,
        response: str,
        was_helpful: bool,
        feedback: str | None = None,
    ) -> bool:
        """Queue one feedback entry; returns False only when it was dropped."""

        entry = {
            "id": uuid.uuid4().hex,
            "timestamp": self._clock(),
            "query": str(query or ""),
            "response": str(response or ""),
            "wasHelpful": bool(was_helpful),
            "feedback": str(feedback) if feedback else None,
        }
        self._ensure_worker()
        with self._idle:
            self._pending += 1
        try:
            self._queue.put_nowait(entry)
        except queue.Full:
            with self._idle:
                self._pending -= 1
                self._idle.notify_all()
            self.dropped += 1
            logger.warning("Cola de feedback llena; entrada descartada")
            return False
        self.accepted += 1
        return True

    def flush(self, timeout: float | None = None) -> bool:
        """Wait until every accepted entry has been handled."""

        deadline = None if timeout is None else time.monotonic() + timeout
        with self._idle:
            while self._pending:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._idle.wait(remaining)
        return True

    def stop(self, timeout: float | None = None) -> None:
        with self._lock:
            thread, self._thread = self._thread, None
        if thread and thread.is_alive():
            self._queue.put(_STOP)
            thread.join(timeout=timeout)

    def stats(self) -> dict[str, int]:
        return {
            "accepted": self.accepted,
            "written": self.written,
            "failed": self.failed,
            "dropped": self.dropped,
        }

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            self._thread = threading.Thread(target=self._run, name="FeedbackWriter", daemon=True)
            self._thread.start()

    def _run(self) -> None:
        while True:
            entry = self._queue.get()
            if entry is _STOP:
                return
            try:
                self._store.write(entry)
            except Exception as exc:
                self.failed += 1
                logger.exception("No se pudo guardar el feedback %s", entry.get("id"), exc_info=exc)
            else:
                self.written += 1
            finally:
                with self._idle:
                    self._pending -= 1
                    self._idle.notify_all()
