"""Forward-looking risk assessment structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RiskCategory(str, Enum):
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    CRITICAL = "Critical"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


class Timeframe(str, Enum):
    IMMEDIATE = "immediate"
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"


@dataclass(frozen=True, slots=True)
class RiskScore:
    score: int
    category: RiskCategory

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "category": self.category.value}


@dataclass(frozen=True, slots=True)
class Prediction:
    message: str
    severity: Priority
    impact: str
    timeframe: Timeframe

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "severity": self.severity.value,
            "impact": self.impact,
            "timeframe": self.timeframe.value,
        }


@dataclass(frozen=True, slots=True)
class RiskRecommendation:
    type: str
    priority: Priority
    action: str
    benefit: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "priority": self.priority.value,
            "action": self.action,
            "benefit": self.benefit,
        }


@dataclass(frozen=True, slots=True)
class Predictions:
    performance_issues: tuple[Prediction, ...] = ()
    storage_issues: tuple[Prediction, ...] = ()
    hardware_warnings: tuple[Prediction, ...] = ()
    security_concerns: tuple[Prediction, ...] = ()

    def is_empty(self) -> bool:
        return not (
            self.performance_issues
            or self.storage_issues
            or self.hardware_warnings
            or self.security_concerns
        )


@dataclass(frozen=True, slots=True)
class RiskAssessment:
    risk_score: RiskScore
    summary: str
    predictions: Predictions = field(default_factory=Predictions)
    recommendations: tuple[RiskRecommendation, ...] = ()
    sub_scores: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "riskScore": self.risk_score.to_dict(),
            "summary": self.summary,
            "predictions": {
                "performanceIssues": [p.to_dict() for p in self.predictions.performance_issues],
                "storageIssues": [p.to_dict() for p in self.predictions.storage_issues],
                "hardwareWarnings": [p.to_dict() for p in self.predictions.hardware_warnings],
                "securityConcerns": [p.to_dict() for p in self.predictions.security_concerns],
                "recommendations": [r.to_dict() for r in self.recommendations],
            },
            "subScores": dict(self.sub_scores),
        }
