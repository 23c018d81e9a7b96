from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping

from agrilog_core.reports.rules import (
    AUTHENTICATION,
    AUTHORIZATION,
    CONFIGURATION,
    DATA_INTEGRITY,
    SECURITY,
)

COMPLIANCE_WEIGHTS: Mapping[str, float] = {
    AUTHENTICATION: 1.5,
    AUTHORIZATION: 2.0,
    DATA_INTEGRITY: 2.5,
    CONFIGURATION: 1.0,
    SECURITY: 3.0,
}
COMPLIANCE_MAX_WEIGHT = 3.0

RISK_WEIGHTS: Mapping[str, int] = {
    "failed_login_attempts": 10,
    "unauthorized_access_attempts": 20,
    "suspicious_activities": 15,
    "permission_changes": 5,
}

# (exclusive lower bound, level), highest first.
RISK_THRESHOLDS = (
    (100, "critical"),
    (50, "high"),
    (20, "medium"),
)
RISK_FLOOR = "low"

RECOMMENDATIONS: Mapping[str, tuple[str, ...]] = {
    "critical": (
        "Immediate security review required",
        "Consider implementing additional authentication measures",
        "Review all permission changes in the last 24 hours",
    ),
    "high": (
        "Schedule security audit",
        "Monitor failed login attempts closely",
        "Review access logs daily",
    ),
    "medium": (
        "Regular security monitoring",
        "Ensure all users have strong passwords",
        "Review permission changes weekly",
    ),
    "low": (
        "Continue regular security practices",
        "Monthly security review recommended",
    ),
}


@dataclass(frozen=True)
class RiskAssessment:
    level: str
    score: int
    recommendations: tuple[str, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "level": self.level,
            "score": self.score,
            "recommendations": list(self.recommendations),
        }


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compliance_score(category_counts: Mapping[str, int], total_events: int) -> int:
    if total_events <= 0:
        return 0
    weighted = sum(
        category_counts.get(category, 0) * weight
        for category, weight in COMPLIANCE_WEIGHTS.items()
    )
    score = round_half_up(weighted / (total_events * COMPLIANCE_MAX_WEIGHT) * 100)
    return max(0, min(100, score))


def risk_score(metrics: Mapping[str, int]) -> int:
    return sum(metrics.get(name, 0) * weight for name, weight in RISK_WEIGHTS.items())


def risk_level(score: int) -> str:
    for threshold, level in RISK_THRESHOLDS:
        if score > threshold:
            return level
    return RISK_FLOOR


def assess_risk(metrics: Mapping[str, int]) -> RiskAssessment:
    score = risk_score(metrics)
    level = risk_level(score)
    return RiskAssessment(level=level, score=score, recommendations=RECOMMENDATIONS[level])
