"""Global configuration values for the Telemetry Center engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path


@dataclass(frozen=True)
class SamplingConfig:
    """Polling intervals (in milliseconds) for the samplers."""

    system_interval_ms: int = 30_000
    session_interval_ms: int = 30_000
    session_min_interval_ms: int = 5_000
    session_max_interval_ms: int = 60_000
    collector_timeout_seconds: float = 5.0
    error_log_size: int = 50


@dataclass(frozen=True)
class HistoryConfig:
    """Capacity of the rolling series."""

    capacity: int = 60  # one hour at 60s granularity
    session_capacity: int = 30


@dataclass(frozen=True)
class HealthThresholds:
    critical_below: int = 40
    warning_below: int = 70


@dataclass(frozen=True)
class RiskWeights:
    """Relative weight of each sub-score in the combined risk score."""

    performance: float = 0.30
    storage: float = 0.30
    hardware: float = 0.25
    security: float = 0.15


@dataclass(frozen=True)
class RiskThresholds:
    critical_at: int = 75
    high_at: int = 50
    moderate_at: int = 25
    # Trend rates are expressed in percentage points per day.
    immediate_rate: float = 10.0
    days_rate: float = 2.0
    weeks_rate: float = 1.0 / 7.0
    cpu_level: float = 85.0
    memory_level: float = 85.0
    disk_warning_level: float = 85.0
    disk_critical_level: float = 95.0


@dataclass(frozen=True)
class AnalysisConfig:
    max_recommendations: int = 5
    log_fetch_limit: int = 200
    cache_seconds: float = 30.0
    query_top_n: int = 5
    session_cpu_threshold: float = 80.0
    session_memory_threshold_mb: float = 2048.0


@dataclass(frozen=True)
class SecurityConfig:
    """Security-related defaults for the Telemetry Center web server."""

    allowed_origins: tuple[str, ...] = ("http://127.0.0.1:5173", "http://localhost:5173")
    allow_credentials: bool = False
    basic_auth_username: str | None = None
    basic_auth_password: str | None = None
    enable_rate_limit: bool = True
    rate_limit_requests: int = 120
    rate_limit_window_seconds: int = 60
    max_body_bytes: int = 64 * 1024


@dataclass(frozen=True)
class Settings:
    """Server settings assembled from defaults and the environment."""

    host: str = "127.0.0.1"
    port: int = 5000
    data_dir: Path = field(default_factory=lambda: Path.home() / ".telemetry_center")
    security: SecurityConfig = field(default_factory=SecurityConfig)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        prefix = "TELEMETRY_CENTER_"
        settings = cls()
        security = settings.security

        origins = env.get(prefix + "ALLOWED_ORIGINS")
        if origins:
            security = replace(
                security,
                allowed_origins=tuple(item.strip() for item in origins.split(",") if item.strip()),
            )
        username = env.get(prefix + "AUTH_USERNAME")
        password = env.get(prefix + "AUTH_PASSWORD")
        if username and password:
            security = replace(security, basic_auth_username=username, basic_auth_password=password)
        if env.get(prefix + "RATE_LIMIT", "").lower() in {"0", "false", "off"}:
            security = replace(security, enable_rate_limit=False)

        port = env.get(prefix + "PORT")
        data_dir = env.get(prefix + "DATA_DIR")
        return replace(
            settings,
            host=env.get(prefix + "HOST", settings.host),
            port=int(port) if port else settings.port,
            data_dir=Path(data_dir).expanduser() if data_dir else settings.data_dir,
            security=security,
        )


APP_NAME = "Telemetry Center"
DATA_DIR = Path.home() / ".telemetry_center"
SAMPLING = SamplingConfig()
HISTORY = HistoryConfig()
HEALTH = HealthThresholds()
RISK_WEIGHTS = RiskWeights()
RISK = RiskThresholds()
ANALYSIS = AnalysisConfig()
SECURITY = SecurityConfig()
