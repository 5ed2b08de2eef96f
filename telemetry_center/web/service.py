"""Service object owning every engine; the HTTP layer only talks to this."""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from dataclasses import asdict
from enum import Enum
from typing import Any, Callable, Mapping

from telemetry_center.core import ANALYSIS, HISTORY, SAMPLING, Settings
from telemetry_center.core.config import AnalysisConfig
from telemetry_center.core.errors import SourceUnreachable, ValidationError
from telemetry_center.data import (
    DriverSource,
    KernelModuleSource,
    LogSource,
    MetricCollector,
    NetworkProbe,
    ProcessSource,
    PsutilCollector,
    PsutilProcessSource,
    SocketNetworkProbe,
    collect_partitions,
    collect_system_info,
    default_log_source,
)
from telemetry_center.engine import (
    DriverDiagnostics,
    FeedbackRecorder,
    HealthScorer,
    JsonlFeedbackStore,
    LogClassifier,
    MetricSampler,
    MonitorSessionManager,
    NetworkDiagnosticEngine,
    PredictiveRiskEngine,
    RollingSeriesStore,
    category_of,
)
from telemetry_center.engine.feedback import FeedbackStore
from telemetry_center.models import LogAnalysis, LogRecord, MetricSample

_PRIMITIVE_TYPES = (int, float, str, bool)
logger = logging.getLogger(__name__)


def to_jsonable(value: Any) -> Any:
    """Convert models, enums and containers into plain JSON values."""

    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, _PRIMITIVE_TYPES):
        return value
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if hasattr(value, "__dataclass_fields__"):
        return to_jsonable(asdict(value))
    if isinstance(value, Mapping):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(item) for item in value]
    return value


def _parse_bool(value: Any, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "1", "yes"}:
        return True
    if isinstance(value, str) and value.strip().lower() in {"false", "0", "no"}:
        return False
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    raise ValidationError(f"{field_name} must be true or false")


class TelemetryService:
    """Wires collectors, stores and engines together with an explicit lifecycle."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        collector: MetricCollector | None = None,
        log_source: LogSource | None = None,
        process_source: ProcessSource | None = None,
        driver_source: DriverSource | None = None,
        probe: NetworkProbe | None = None,
        feedback_store: FeedbackStore | None = None,
        analysis_config: AnalysisConfig = ANALYSIS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings or Settings()
        self._analysis_config = analysis_config
        self._clock = clock
        self._lock = threading.RLock()

        self.store = RollingSeriesStore(HISTORY.capacity, name="system", clock=clock)
        self.sampler = MetricSampler(
            collector or PsutilCollector(),
            self.store,
            interval=SAMPLING.system_interval_ms / 1000,
            timeout=SAMPLING.collector_timeout_seconds,
            clock=clock,
        )
        self.log_source = log_source or default_log_source()
        self.classifier = LogClassifier(analysis_config.max_recommendations)
        self.scorer = HealthScorer()
        self.risk = PredictiveRiskEngine()
        self.sessions = MonitorSessionManager(
            process_source or PsutilProcessSource(),
            self.log_source,
            self.classifier,
            analysis=analysis_config,
            clock=clock,
        )
        self.feedback = FeedbackRecorder(
            feedback_store or JsonlFeedbackStore(self.settings.data_dir / "feedback.jsonl"),
            clock=clock,
        )
        self.drivers = DriverDiagnostics(driver_source or KernelModuleSource(), classifier=self.classifier)
        self.network = NetworkDiagnosticEngine(probe or SocketNetworkProbe(), store=self.store, clock=clock)

        self._logs_cache: tuple[float, list[LogRecord]] | None = None
        self._analysis_cache: tuple[float, LogAnalysis] | None = None
        self._system_info: dict[str, Any] | None = None

    def start(self) -> None:
        self.sampler.start()
        logger.info("Servicio de telemetría iniciado")

    def stop(self) -> None:
        self.sessions.shutdown()
        self.sampler.close()
        self.feedback.stop(timeout=SAMPLING.collector_timeout_seconds)
        logger.info("Servicio de telemetría detenido")

    # -- metrics -----------------------------------------------------------

    def current_sample(self) -> MetricSample:
        latest = self.store.latest()
        if latest is None:
            latest = self.sampler.sample()
        return latest

    def system_data(self) -> dict[str, Any]:
        sample = self.current_sample()
        data = sample.to_dict()
        data["health"] = self.scorer.score(sample).to_dict()
        data["system"] = self.system_info()
        data["diagnostics"] = self.sampler.diagnostics()
        return data

    def system_info(self) -> dict[str, Any]:
        with self._lock:
            if self._system_info is None:
                self._system_info = to_jsonable(collect_system_info())
            return self._system_info

    def history(self, duration: float | None = None) -> list[dict[str, Any]]:
        samples = self.store.snapshot() if duration is None else self.store.window(duration)
        return [sample.to_dict() for sample in samples]

    # -- logs --------------------------------------------------------------

    def logs(self, limit: int | None = None) -> list[LogRecord]:
        """Recent log records; falls back to the last good read when the source is down."""

        wanted = limit or self._analysis_config.log_fetch_limit
        try:
            records = self.log_source.read(wanted)
        except SourceUnreachable:
            with self._lock:
                cached = self._logs_cache
            if cached is None:
                raise
            logger.warning("Fuente de logs no disponible; usando la lectura de hace %.0fs", self._clock() - cached[0])
            return cached[1][-wanted:]
        with self._lock:
            self._logs_cache = (self._clock(), list(records))
        return records

    def analyze_logs(self, *, refresh: bool = False) -> LogAnalysis:
        now = self._clock()
        with self._lock:
            cached = self._analysis_cache
        if not refresh and cached and now - cached[0] < self._analysis_config.cache_seconds:
            return cached[1]
        analysis = self.classifier.classify(self.logs())
        with self._lock:
            self._analysis_cache = (now, analysis)
        return analysis

    def diagnose_logs(self, query: Any) -> dict[str, Any]:
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("query must be a non-empty string")
        diagnosis = self.classifier.diagnose_query(
            query, self.logs(), limit=self._analysis_config.query_top_n
        )
        return diagnosis.to_dict()

    def train(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        query = payload.get("query")
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("query must be a non-empty string")
        accepted = self.feedback.train(
            query,
            str(payload.get("response") or ""),
            _parse_bool(payload.get("wasHelpful"), "wasHelpful"),
            payload.get("feedback") or None,
        )
        return {"success": True, "accepted": accepted}

    def logs_analyzer(self) -> dict[str, Any]:
        """Classified log listing: every record tagged with its issue category."""

        records = self.logs()
        analysis = self.analyze_logs()
        tagged = []
        counts: Counter[str] = Counter()
        for record in reversed(records):
            category = category_of(record).value
            counts[category] += 1
            tagged.append({**record.to_dict(), "category": category})
        return {
            "analysis": analysis.to_dict(),
            "categories": dict(counts.most_common()),
            "logs": tagged,
        }

    def diagnose(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Free-text diagnosis combining the current metrics with related logs."""

        user_input = payload.get("userInput")
        if not isinstance(user_input, str) or not user_input.strip():
            raise ValidationError("userInput must be a non-empty string")
        sample = self._sample_from(payload.get("systemData")) or self.current_sample()
        health = self.scorer.score(sample)
        try:
            records = self.logs()
        except SourceUnreachable as exc:
            logger.warning("Diagnóstico sin logs: %s", exc)
            records = []
        query = self.classifier.diagnose_query(user_input, records, limit=self._analysis_config.query_top_n)

        findings: list[str] = []
        for label, value in (
            ("CPU", sample.cpu_usage),
            ("Memory", sample.memory_usage),
            ("Disk", sample.disk_percent()),
        ):
            if value is not None and value >= 90:
                findings.append(f"{label} usage is very high ({value:.0f}%).")
            elif value is not None and value >= 75:
                findings.append(f"{label} usage is elevated ({value:.0f}%).")
        overview = (
            f"System health is {health.status.value.lower()} ({health.score}/100). "
            + (" ".join(findings) if findings else "Resource usage is within normal ranges.")
        )
        analysis = self.classifier.classify(query.related_logs)
        return {
            "diagnosis": f"{overview} {query.diagnosis}",
            "health": health.to_dict(),
            "relatedLogs": [record.to_dict() for record in query.related_logs],
            "recommendations": list(analysis.recommendations),
        }

    # -- risk --------------------------------------------------------------

    def predictive(self) -> dict[str, Any]:
        try:
            analysis: LogAnalysis | None = self.analyze_logs()
        except SourceUnreachable as exc:
            logger.warning("Predicción sin logs: %s", exc)
            analysis = None
        return self.risk.predict(self.store.snapshot(), analysis).to_dict()

    # -- applications ------------------------------------------------------

    def running_applications(self) -> dict[str, Any]:
        return {"applications": [d.to_dict() for d in self.sessions.list_running()]}

    def monitoring_status(self) -> dict[str, Any]:
        return {"applications": [s.to_dict() for s in self.sessions.status()]}

    def start_monitoring(self, app_name: str, interval_ms: Any = None) -> dict[str, Any]:
        session = self.sessions.start(app_name, interval_ms)
        return {"success": True, "session": session.to_dict()}

    def stop_monitoring(self, app_name: str) -> dict[str, Any]:
        stopped = self.sessions.stop(app_name)
        return {"success": True, "stopped": stopped}

    def app_diagnostics(self, app_name: str) -> dict[str, Any]:
        try:
            records = self.logs()
        except SourceUnreachable as exc:
            logger.warning("Diagnóstico de '%s' sin logs: %s", app_name, exc)
            records = []
        return self.drivers.app_diagnostics(app_name, records)

    # -- drivers -----------------------------------------------------------

    def driver_list(self) -> dict[str, Any]:
        return {"success": True, "drivers": [d.to_dict() for d in self.drivers.inventory()]}

    def driver_updates(self) -> dict[str, Any]:
        result = self.drivers.check_updates()
        return {
            "success": True,
            "drivers": [d.to_dict() for d in result["drivers"]],
            "summary": result["summary"],
        }

    def driver_problems(self) -> dict[str, Any]:
        records = self.logs()
        return {
            "success": True,
            "problems": [p.to_dict() for p in self.drivers.problems(records)],
            "issues": [i.to_dict() for i in self.drivers.issues(records)],
        }

    def device_manager(self, driver_id: str) -> dict[str, Any]:
        return {"success": True, **self.drivers.device_manager_command(driver_id)}

    # -- disk and network ----------------------------------------------------

    def disk_info(self) -> dict[str, Any]:
        return {"success": True, "disks": to_jsonable(collect_partitions())}

    def network_diagnostics(self) -> dict[str, Any]:
        return self.network.run_diagnostics().to_dict()

    def network_issues(self) -> dict[str, Any]:
        return {"issues": [issue.to_dict() for issue in self.network.issues()]}

    def network_fix(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        issue_id = payload.get("issueId")
        fix_type = payload.get("fixType")
        if not isinstance(issue_id, str) or not issue_id:
            raise ValidationError("issueId is required")
        if not isinstance(fix_type, str) or not fix_type:
            raise ValidationError("fixType is required")
        result = self.network.fix(issue_id, fix_type)
        return {
            "success": True,
            "message": f"Applied '{result['fix'].description}'",
            "issue": result["issue"].to_dict(),
            "fix": result["fix"].to_dict(),
            "result": result["result"],
        }

    def _sample_from(self, data: Any) -> MetricSample | None:
        if not isinstance(data, Mapping):
            return None

        def number(key: str) -> float | None:
            value = data.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return None
            return float(value)

        sample = MetricSample(
            timestamp=self._clock(),
            cpu_usage=number("cpuUsage"),
            memory_usage=number("memoryUsage"),
            disk_usage=number("diskUsage"),
        )
        return None if sample.is_empty() else sample
