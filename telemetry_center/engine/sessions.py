"""Registry of per-application monitoring sessions."""

from __future__ import annotations

import logging
import re
import threading
import time
from typing import Callable

from telemetry_center.core import ANALYSIS, HISTORY, SAMPLING, PeriodicTask
from telemetry_center.core.config import AnalysisConfig, SamplingConfig
from telemetry_center.core.errors import NotFoundError, SourceUnreachable, ValidationError
from telemetry_center.data.logs import LogSource
from telemetry_center.data.processes import ProcessSource, normalize_app_name
from telemetry_center.models import (
    LogRecord,
    MetricSample,
    MonitorSession,
    PerformanceData,
    ProcessDescriptor,
    SessionData,
    SessionIssue,
    SessionStatus,
)

from .classifier import LogClassifier, recommendation_for
from .store import RollingSeriesStore

logger = logging.getLogger(__name__)

MONITOR_SOURCE = "monitor"


def parse_interval(value: object, sampling: SamplingConfig = SAMPLING) -> int:
    """Validate a polling interval in milliseconds and clamp it to the allowed range."""

    if value is None or value == "":
        return sampling.session_interval_ms
    if isinstance(value, bool):
        raise ValidationError("interval must be a number of milliseconds")
    try:
        interval = int(float(value))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"interval must be a number of milliseconds, got {value!r}") from exc
    return max(sampling.session_min_interval_ms, min(sampling.session_max_interval_ms, interval))


def mentions_app(record: LogRecord, app_name: str) -> bool:
    """True when the app name appears as a whole word in the record source or message."""

    wanted = normalize_app_name(app_name)
    if not wanted:
        return False
    pattern = re.compile(r"(?<!\w)" + re.escape(wanted) + r"(?!\w)", re.IGNORECASE)
    return bool(pattern.search(record.source) or pattern.search(record.message))


class _Session:
    """Mutable state of one session; only the manager touches it."""

    def __init__(self, app_name: str, interval_ms: int, started_at: float, capacity: int) -> None:
        self.app_name = app_name
        self.interval_ms = interval_ms
        self.started_at = started_at
        self.store = RollingSeriesStore(capacity, name=f"app:{normalize_app_name(app_name)}")
        self.lock = threading.Lock()
        self.task: PeriodicTask | None = None
        self.last_update: float | None = None
        self.latest = SessionData()
        self.new_issues: tuple[SessionIssue, ...] = ()
        self.first_seen: dict[tuple[str, str], float] = {}
        self.polls = 0

    def snapshot(self, status: SessionStatus = SessionStatus.ACTIVE) -> MonitorSession:
        with self.lock:
            return MonitorSession(
                app_name=self.app_name,
                poll_interval_ms=self.interval_ms,
                status=status,
                started_at=self.started_at,
                last_update=self.last_update,
                latest_data=self.latest,
                new_issues=self.new_issues,
                polls=self.polls,
            )


class MonitorSessionManager:
    """Starts, reschedules and stops one sampling loop per application.

    Sessions are keyed by their normalized application name, so ``Chrome`` and
    ``chrome.exe`` refer to the same session. Starting an existing session only
    changes its interval. Each session runs on its own task; adding or removing
    one never pauses the others.
    """

    def __init__(
        self,
        process_source: ProcessSource,
        log_source: LogSource,
        classifier: LogClassifier | None = None,
        *,
        sampling: SamplingConfig = SAMPLING,
        analysis: AnalysisConfig = ANALYSIS,
        capacity: int = HISTORY.session_capacity,
        clock: Callable[[], float] = time.time,
        task_factory: Callable[..., PeriodicTask] = PeriodicTask,
    ) -> None:
        self._processes = process_source
        self._logs = log_source
        self._classifier = classifier or LogClassifier()
        self._sampling = sampling
        self._analysis = analysis
        self._capacity = capacity
        self._clock = clock
        self._task_factory = task_factory
        self._sessions: dict[str, _Session] = {}
        self._lock = threading.RLock()

    def list_running(self) -> list[ProcessDescriptor]:
        return self._processes.list_running()

    def start(self, app_name: str, interval_ms: object = None) -> MonitorSession:
        name = (app_name or "").strip()
        if not normalize_app_name(name):
            raise ValidationError("appName must not be empty")
        interval = parse_interval(interval_ms, self._sampling)
        key = normalize_app_name(name)

        with self._lock:
            session = self._sessions.get(key)
            if session is not None:
                with session.lock:
                    session.interval_ms = interval
                if session.task is not None:
                    session.task.reschedule(interval / 1000)
                logger.info("Monitoreo de '%s' reprogramado a %d ms", session.app_name, interval)
                return session.snapshot()

            session = _Session(name, interval, self._clock(), self._capacity)
            session.task = self._task_factory(
                lambda: self._poll(session),
                interval / 1000,
                name=f"AppMonitor-{key}",
            )
            self._sessions[key] = session
            session.task.start()
        logger.info("Monitoreo de '%s' iniciado cada %d ms", name, interval)
        return session.snapshot()

    def stop(self, app_name: str) -> bool:
        """Stop and remove a session; unknown names are a silent no-op."""

        key = normalize_app_name(app_name or "")
        with self._lock:
            session = self._sessions.pop(key, None)
        if session is None:
            return False
        if session.task is not None:
            session.task.stop(timeout=self._sampling.collector_timeout_seconds)
        logger.info("Monitoreo de '%s' detenido", session.app_name)
        return True

    def status(self) -> list[MonitorSession]:
        with self._lock:
            sessions = list(self._sessions.values())
        return [session.snapshot() for session in sessions]

    def get(self, app_name: str) -> MonitorSession | None:
        with self._lock:
            session = self._sessions.get(normalize_app_name(app_name or ""))
        return session.snapshot() if session else None

    def history(self, app_name: str) -> tuple[MetricSample, ...]:
        return self._require(app_name).store.snapshot()

    def poll(self, app_name: str) -> MonitorSession:
        """Run one poll immediately, outside the session's schedule."""

        session = self._require(app_name)
        self._poll(session)
        return session.snapshot()

    def shutdown(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            if session.task is not None:
                session.task.stop(timeout=self._sampling.collector_timeout_seconds)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _require(self, app_name: str) -> _Session:
        with self._lock:
            session = self._sessions.get(normalize_app_name(app_name or ""))
        if session is None:
            raise NotFoundError(f"'{app_name}' is not being monitored")
        return session

    def _poll(self, session: _Session) -> None:
        now = self._clock()
        try:
            performance: PerformanceData | None = self._processes.usage_for(session.app_name)
        except Exception as exc:
            logger.exception("No se pudo leer el uso de '%s'", session.app_name, exc_info=exc)
            performance = None

        try:
            records = self._logs.read(self._analysis.log_fetch_limit)
        except SourceUnreachable as exc:
            logger.warning("Logs no disponibles para '%s': %s", session.app_name, exc)
            records = []
        related = [record for record in records if mentions_app(record, session.app_name)]
        issues = self._detect_issues(session, performance, related, now)

        with session.lock:
            previous = {issue.key for issue in session.latest.issues}
            session.first_seen = {
                issue.key: session.first_seen.get(issue.key, now) for issue in issues
            }
            issues = tuple(
                SessionIssue(
                    message=issue.message,
                    recommendation=issue.recommendation,
                    source=issue.source,
                    timestamp=session.first_seen[issue.key],
                )
                for issue in issues
            )
            session.latest = SessionData(
                performance_data=performance if performance is not None else session.latest.performance_data,
                issues=issues,
            )
            session.new_issues = tuple(issue for issue in issues if issue.key not in previous)
            session.last_update = now
            session.polls += 1

        if performance is not None:
            try:
                session.store.append(
                    MetricSample(timestamp=now, cpu_usage=performance.cpu, memory_usage=None)
                )
            except ValueError as exc:
                logger.warning("Muestra fuera de orden para '%s': %s", session.app_name, exc)
        if session.new_issues:
            logger.info(
                "'%s': %d problema(s) nuevo(s) detectado(s)", session.app_name, len(session.new_issues)
            )

    def _detect_issues(
        self,
        session: _Session,
        performance: PerformanceData | None,
        related: list[LogRecord],
        now: float,
    ) -> list[SessionIssue]:
        issues: list[SessionIssue] = []
        analysis = self._classifier.classify(related)
        for critical in analysis.critical_issues:
            issues.append(
                SessionIssue(
                    message=critical.issue,
                    recommendation=recommendation_for(critical.category),
                    source=critical.source,
                    timestamp=now,
                )
            )
        for warning in analysis.warnings:
            issues.append(
                SessionIssue(
                    message=warning.message,
                    recommendation=recommendation_for(warning.category, critical=False),
                    source=warning.component,
                    timestamp=now,
                )
            )

        if performance is None:
            return issues
        limits = self._analysis
        if not performance.running:
            issues.append(
                SessionIssue(
                    message=f"{session.app_name} is not running",
                    recommendation="Start the application, or check that the name matches its process name.",
                    source=MONITOR_SOURCE,
                    timestamp=now,
                )
            )
            return issues
        if performance.cpu >= limits.session_cpu_threshold:
            issues.append(
                SessionIssue(
                    message=f"CPU usage above {limits.session_cpu_threshold:.0f}%",
                    recommendation=(
                        f"Close unused windows or tabs in {session.app_name} and check for "
                        "background tasks it is running."
                    ),
                    source=MONITOR_SOURCE,
                    timestamp=now,
                )
            )
        if performance.memory >= limits.session_memory_threshold_mb:
            issues.append(
                SessionIssue(
                    message=f"Memory usage above {limits.session_memory_threshold_mb:.0f} MB",
                    recommendation=(
                        f"Restart {session.app_name} to release memory; if usage keeps growing, "
                        "check for updates that fix memory leaks."
                    ),
                    source=MONITOR_SOURCE,
                    timestamp=now,
                )
            )
        return issues
