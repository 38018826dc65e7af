"""Compliance score: a bounded 0-100 summary of gap severities."""

from dataclasses import dataclass
from typing import Tuple

from .calculations import clamp
from .severity import ComplianceStatus

BASE_SCORE = 100
WARNING_PENALTY = 5
CRITICAL_PENALTY = 10
VIOLATION_PENALTY = 20
CLEAN_HISTORY_BONUS = 5
CLEAN_HISTORY_MIN_TRIPS = 10
MAX_RECOMMENDATIONS = 5

# (minimum score, status), checked top down
STATUS_BANDS = (
    (95, ComplianceStatus.EXCELLENT),
    (85, ComplianceStatus.GOOD),
    (70, ComplianceStatus.FAIR),
    (50, ComplianceStatus.POOR),
)

URGENT_PREFIX = "Urgent:"


@dataclass(frozen=True)
class ComplianceScore:
    score: int
    status: ComplianceStatus
    recommendations: Tuple[str, ...] = ()


def status_for_score(score: float) -> ComplianceStatus:
    """Map a clamped score to its status band."""
    for minimum, status in STATUS_BANDS:
        if score >= minimum:
            return status
    return ComplianceStatus.CRITICAL


def score_compliance(
    total_gaps: int,
    warning_count: int,
    critical_count: int,
    violation_count: int,
    total_completed_trips: int,
) -> ComplianceScore:
    """
    Score a vehicle's usage compliance.

    Start at 100, subtract 5 per WARNING, 10 per CRITICAL and 20 per
    VIOLATION gap, add 5 for a clean history (no flagged gaps over more
    than 10 trips), then clamp to [0, 100].

    Args:
        total_gaps: number of flagged (non-NORMAL) gaps
    """
    counts = (total_gaps, warning_count, critical_count, violation_count, total_completed_trips)
    if any(c < 0 for c in counts):
        raise ValueError(f"Counts must be non-negative (got {counts})")

    score = (
        BASE_SCORE
        - WARNING_PENALTY * warning_count
        - CRITICAL_PENALTY * critical_count
        - VIOLATION_PENALTY * violation_count
    )
    if total_gaps == 0 and total_completed_trips > CLEAN_HISTORY_MIN_TRIPS:
        score += CLEAN_HISTORY_BONUS
    score = int(clamp(score, 0, 100))
    status = status_for_score(score)

    recommendations = []
    if violation_count:
        recommendations.append(
            f"{URGENT_PREFIX} address violation-level gaps before filing any insurance claim"
        )
    if critical_count:
        recommendations.append("Resolve critical mileage gaps to protect claim eligibility")
    if warning_count:
        recommendations.append("Keep trip notes for gaps above the usage allowance")
    if status is ComplianceStatus.EXCELLENT and not (warning_count or critical_count or violation_count):
        recommendations.append("Maintain current usage patterns")

    return ComplianceScore(
        score=score,
        status=status,
        recommendations=tuple(recommendations[:MAX_RECOMMENDATIONS]),
    )
