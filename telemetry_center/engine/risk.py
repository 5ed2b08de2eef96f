"""Forward-looking risk assessment from metric history and classified logs."""

from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from typing import Callable, Sequence

from telemetry_center.core import RISK, RISK_WEIGHTS
from telemetry_center.core.config import RiskThresholds, RiskWeights
from telemetry_center.models import (
    IssueCategory,
    LogAnalysis,
    MetricSample,
    Prediction,
    Predictions,
    Priority,
    RiskAssessment,
    RiskCategory,
    RiskRecommendation,
    RiskScore,
    Timeframe,
)

from .health import round_half_up

SECONDS_PER_DAY = 86_400.0
# Shorter windows are too noisy to extrapolate resource usage from.
MIN_TREND_SPAN_SECONDS = 15 * 60
STORAGE_HORIZON_DAYS = 90.0
PERFORMANCE_HORIZON_DAYS = 7.0
SATURATION_PERCENT = 90.0

HEALTHY_SUMMARY = "No potential issues detected. Your system appears to be in good health."


@dataclass(slots=True)
class _Findings:
    score: float = 0.0
    predictions: list[Prediction] = field(default_factory=list)
    recommendations: list[RiskRecommendation] = field(default_factory=list)


def trend_per_day(
    samples: Sequence[MetricSample],
    value: Callable[[MetricSample], float | None],
) -> float | None:
    """Least-squares slope of ``value`` in percentage points per day."""

    xs: list[float] = []
    ys: list[float] = []
    for sample in samples:
        reading = value(sample)
        if reading is None:
            continue
        xs.append(sample.timestamp)
        ys.append(float(reading))
    if len(xs) < 2 or xs[-1] - xs[0] < MIN_TREND_SPAN_SECONDS:
        return None
    try:
        slope = statistics.linear_regression(xs, ys).slope
    except statistics.StatisticsError:
        return None
    return slope * SECONDS_PER_DAY


def timeframe_for_rate(rate_per_day: float, thresholds: RiskThresholds = RISK) -> Timeframe:
    """Steeper growth means less time before the problem materializes."""

    rate = abs(rate_per_day)
    if rate >= thresholds.immediate_rate:
        return Timeframe.IMMEDIATE
    if rate >= thresholds.days_rate:
        return Timeframe.DAYS
    if rate >= thresholds.weeks_rate:
        return Timeframe.WEEKS
    return Timeframe.MONTHS


def category_for_score(score: int, thresholds: RiskThresholds = RISK) -> RiskCategory:
    if score >= thresholds.critical_at:
        return RiskCategory.CRITICAL
    if score >= thresholds.high_at:
        return RiskCategory.HIGH
    if score >= thresholds.moderate_at:
        return RiskCategory.MODERATE
    return RiskCategory.LOW


def _severity_for(timeframe: Timeframe) -> Priority:
    if timeframe in (Timeframe.IMMEDIATE, Timeframe.DAYS):
        return Priority.HIGH
    if timeframe is Timeframe.WEEKS:
        return Priority.MEDIUM
    return Priority.LOW


def _mean(values: list[float]) -> float | None:
    return statistics.fmean(values) if values else None


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


class PredictiveRiskEngine:
    def __init__(
        self,
        weights: RiskWeights = RISK_WEIGHTS,
        thresholds: RiskThresholds = RISK,
    ) -> None:
        total = weights.performance + weights.storage + weights.hardware + weights.security
        if total <= 0:
            raise ValueError("risk weights must add up to a positive number")
        self._weights = weights
        self._thresholds = thresholds

    def predict(
        self,
        window: Sequence[MetricSample],
        analysis: LogAnalysis | None = None,
    ) -> RiskAssessment:
        samples = sorted(window, key=lambda s: s.timestamp)
        performance = self._performance(samples, analysis)
        storage = self._storage(samples)
        hardware = self._hardware(analysis)
        security = self._security(analysis)

        weights = self._weights
        total_weight = weights.performance + weights.storage + weights.hardware + weights.security
        combined = (
            performance.score * weights.performance
            + storage.score * weights.storage
            + hardware.score * weights.hardware
            + security.score * weights.security
        ) / total_weight
        score = round_half_up(_clamp(combined))
        risk = RiskScore(score=score, category=category_for_score(score, self._thresholds))

        predictions = Predictions(
            performance_issues=tuple(performance.predictions),
            storage_issues=tuple(storage.predictions),
            hardware_warnings=tuple(hardware.predictions),
            security_concerns=tuple(security.predictions),
        )
        detected = (
            performance.recommendations
            + storage.recommendations
            + hardware.recommendations
            + security.recommendations
        )
        # sorted() is stable, so equal priorities keep detection order.
        recommendations = tuple(sorted(detected, key=lambda r: r.priority.rank))

        return RiskAssessment(
            risk_score=risk,
            summary=self._summarize(risk, predictions, has_metrics=bool(samples)),
            predictions=predictions,
            recommendations=recommendations,
            sub_scores={
                "performance": round(performance.score, 1),
                "storage": round(storage.score, 1),
                "hardware": round(hardware.score, 1),
                "security": round(security.score, 1),
            },
        )

    def _performance(self, samples: Sequence[MetricSample], analysis: LogAnalysis | None) -> _Findings:
        findings = _Findings()
        thresholds = self._thresholds
        risks: list[float] = []
        minutes = 0.0
        if len(samples) >= 2:
            minutes = (samples[-1].timestamp - samples[0].timestamp) / 60

        for label, read, level in (
            ("CPU", lambda s: s.cpu_usage, thresholds.cpu_level),
            ("Memory", lambda s: s.memory_usage, thresholds.memory_level),
        ):
            values = [v for v in map(read, samples) if v is not None]
            average = _mean(values)
            if average is None:
                continue
            risks.append(_clamp((average - 50.0) * 2.0))
            if average >= level:
                findings.predictions.append(
                    Prediction(
                        message=(
                            f"{label} usage has averaged {average:.0f}% "
                            f"over the last {max(minutes, 1):.0f} minutes."
                        ),
                        severity=Priority.HIGH,
                        impact="Applications respond slowly and may freeze under sustained load",
                        timeframe=Timeframe.IMMEDIATE,
                    )
                )
                findings.recommendations.append(
                    RiskRecommendation(
                        type="performance",
                        priority=Priority.HIGH,
                        action=f"Close or limit the processes with the highest {label.lower()} usage",
                        benefit="Restores responsiveness and reduces the chance of crashes",
                    )
                )
                continue

            rate = trend_per_day(samples, read)
            latest = values[-1]
            if rate is None or rate <= 0 or latest >= SATURATION_PERCENT:
                continue
            days_to_saturation = (SATURATION_PERCENT - latest) / rate
            if days_to_saturation > PERFORMANCE_HORIZON_DAYS:
                continue
            timeframe = timeframe_for_rate(rate, thresholds)
            risks.append(_clamp(100.0 - days_to_saturation / PERFORMANCE_HORIZON_DAYS * 60.0))
            findings.predictions.append(
                Prediction(
                    message=(
                        f"{label} usage is rising about {rate:.1f}% per day and may reach "
                        f"{SATURATION_PERCENT:.0f}% within {max(days_to_saturation, 0.1):.1f} days."
                    ),
                    severity=_severity_for(timeframe),
                    impact="Performance will degrade gradually as resources saturate",
                    timeframe=timeframe,
                )
            )
            findings.recommendations.append(
                RiskRecommendation(
                    type="performance",
                    priority=Priority.MEDIUM,
                    action=f"Investigate what is driving the steady growth in {label.lower()} usage",
                    benefit="Prevents a slow performance decline from becoming an outage",
                )
            )

        if analysis is not None:
            log_hits = 0
            for category in (IssueCategory.CPU, IssueCategory.MEMORY):
                critical, warnings = analysis.count(category)
                log_hits += critical * 15 + warnings * 5
            if log_hits:
                risks.append(_clamp(log_hits))

        findings.score = max(risks, default=0.0)
        return findings

    def _storage(self, samples: Sequence[MetricSample]) -> _Findings:
        findings = _Findings()
        thresholds = self._thresholds
        usage = [(s.timestamp, s.disk_percent()) for s in samples]
        usage = [(ts, pct) for ts, pct in usage if pct is not None]
        if not usage:
            return findings

        used = usage[-1][1]
        risks = [_clamp((used - 60.0) * 2.5)]

        if used >= thresholds.disk_warning_level:
            critical = used >= thresholds.disk_critical_level
            findings.predictions.append(
                Prediction(
                    message=f"The primary volume is {used:.0f}% full.",
                    severity=Priority.HIGH if critical else Priority.MEDIUM,
                    impact="Applications and updates fail once the disk has no free space",
                    timeframe=Timeframe.IMMEDIATE if critical else Timeframe.DAYS,
                )
            )
            findings.recommendations.append(
                RiskRecommendation(
                    type="storage",
                    priority=Priority.HIGH if critical else Priority.MEDIUM,
                    action="Free up space on the primary volume: clear temporary files and uninstall unused software",
                    benefit="Keeps the system able to write files, logs and updates",
                )
            )

        rate = trend_per_day(samples, lambda s: s.disk_percent())
        if rate is not None and rate >= thresholds.weeks_rate and used < 100.0:
            days_to_full = (100.0 - used) / rate
            timeframe = timeframe_for_rate(rate, thresholds)
            severity = _severity_for(timeframe)
            if days_to_full <= 1:
                trend_risk = 100.0
            elif days_to_full <= 7:
                trend_risk = 80.0
            elif days_to_full <= 30:
                trend_risk = 60.0
            elif days_to_full <= STORAGE_HORIZON_DAYS:
                trend_risk = 40.0
            else:
                # Steady growth, but the volume has months of headroom left.
                trend_risk = 20.0
                severity = Priority.LOW
            risks.append(trend_risk)
            findings.predictions.append(
                Prediction(
                    message=(
                        f"Free disk space is shrinking by about {rate * 7:.1f}% per week; "
                        f"the primary volume will be full in roughly {days_to_full:.0f} days."
                    ),
                    severity=severity,
                    impact="Running out of disk space causes data loss and failed updates",
                    timeframe=timeframe,
                )
            )
            findings.recommendations.append(
                RiskRecommendation(
                    type="storage",
                    priority=severity,
                    action="Find what is consuming disk space and schedule regular cleanups or archive old data",
                    benefit="Stops the disk from filling up before it affects your work",
                )
            )

        findings.score = max(risks)
        return findings

    def _hardware(self, analysis: LogAnalysis | None) -> _Findings:
        findings = _Findings()
        if analysis is None:
            return findings
        hw_critical, hw_warnings = analysis.count(IssueCategory.HARDWARE)
        drv_critical, drv_warnings = analysis.count(IssueCategory.DRIVER)
        findings.score = _clamp(hw_critical * 30 + hw_warnings * 10 + drv_critical * 20 + drv_warnings * 5)

        if hw_critical or hw_warnings:
            if hw_critical >= 5:
                timeframe = Timeframe.IMMEDIATE
            elif hw_critical:
                timeframe = Timeframe.DAYS
            else:
                timeframe = Timeframe.WEEKS
            findings.predictions.append(
                Prediction(
                    message=(
                        f"{hw_critical} hardware error(s) and {hw_warnings} hardware warning(s) "
                        "were logged recently."
                    ),
                    severity=_severity_for(timeframe),
                    impact="Repeated hardware errors often precede component failure",
                    timeframe=timeframe,
                )
            )
            findings.recommendations.append(
                RiskRecommendation(
                    type="hardware",
                    priority=Priority.HIGH if hw_critical else Priority.MEDIUM,
                    action="Back up important data and run the vendor's hardware diagnostics",
                    benefit="Protects your data if a component is about to fail",
                )
            )
        if drv_critical or drv_warnings:
            timeframe = Timeframe.DAYS if drv_critical else Timeframe.WEEKS
            findings.predictions.append(
                Prediction(
                    message=f"{drv_critical + drv_warnings} driver problem(s) were logged recently.",
                    severity=_severity_for(timeframe),
                    impact="Unstable drivers cause device dropouts and system crashes",
                    timeframe=timeframe,
                )
            )
            findings.recommendations.append(
                RiskRecommendation(
                    type="hardware",
                    priority=Priority.MEDIUM if drv_critical else Priority.LOW,
                    action="Update the drivers of the devices reporting errors",
                    benefit="Improves device stability and compatibility",
                )
            )
        return findings

    def _security(self, analysis: LogAnalysis | None) -> _Findings:
        findings = _Findings()
        if analysis is None:
            return findings
        critical, warnings = analysis.count(IssueCategory.SECURITY)
        findings.score = _clamp(critical * 35 + warnings * 15)
        if critical or warnings:
            timeframe = Timeframe.IMMEDIATE if critical else Timeframe.DAYS
            findings.predictions.append(
                Prediction(
                    message=f"{critical + warnings} security-related event(s) were logged recently.",
                    severity=_severity_for(timeframe),
                    impact="Unauthorized access can expose personal data and compromise the system",
                    timeframe=timeframe,
                )
            )
            findings.recommendations.append(
                RiskRecommendation(
                    type="security",
                    priority=Priority.HIGH if critical else Priority.MEDIUM,
                    action="Review failed logins, update passwords and make sure the firewall is enabled",
                    benefit="Reduces the chance of unauthorized access",
                )
            )
        return findings

    @staticmethod
    def _summarize(risk: RiskScore, predictions: Predictions, *, has_metrics: bool) -> str:
        everything = (
            predictions.performance_issues
            + predictions.storage_issues
            + predictions.hardware_warnings
            + predictions.security_concerns
        )
        note = (
            ""
            if has_metrics
            else " Metric history is not available yet, so resource trends were not evaluated."
        )
        if not everything:
            return HEALTHY_SUMMARY + note
        most_pressing = min(
            everything,
            key=lambda p: (p.severity.rank, list(Timeframe).index(p.timeframe)),
        )
        return (
            f"{risk.category.value} risk ({risk.score}/100): {len(everything)} potential issue(s) "
            f"detected. Most pressing: {most_pressing.message}{note}"
        )
