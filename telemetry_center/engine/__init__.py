"""Analysis engines: sampling, scoring, classification, risk and diagnostics."""

from .classifier import LogClassifier, category_of, recommendation_for
from .drivers import DriverDiagnostics
from .feedback import FeedbackRecorder, JsonlFeedbackStore
from .health import HealthScorer, round_half_up
from .network import DryRunFixExecutor, NetworkDiagnosticEngine
from .risk import PredictiveRiskEngine, timeframe_for_rate
from .sampler import MetricSampler
from .sessions import MonitorSessionManager
from .store import RollingSeriesStore

__all__ = [
    "LogClassifier",
    "category_of",
    "recommendation_for",
    "DriverDiagnostics",
    "FeedbackRecorder",
    "JsonlFeedbackStore",
    "HealthScorer",
    "round_half_up",
    "DryRunFixExecutor",
    "NetworkDiagnosticEngine",
    "PredictiveRiskEngine",
    "timeframe_for_rate",
    "MetricSampler",
    "MonitorSessionManager",
    "RollingSeriesStore",
]
