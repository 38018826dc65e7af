"""Insurance impact: claim approval likelihood and processing speed."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from .calculations import clamp
from .forensics import AnomalyKind
from .intelligence import ReadinessIssue, VehicleIntelligence
from .severity import RiskLevel

FAST_TRACK_MIN_SCORE = 90
SLOW_BELOW_SCORE = 70


class ProcessingSpeed(Enum):
    FAST = "Fast"
    NORMAL = "Normal"
    SLOW = "Slow"
    MANUAL_REVIEW = "ManualReview"


ANOMALY_DOCUMENTATION = {
    AnomalyKind.ODOMETER_ROLLBACK: "Odometer photo or inspection report confirming the current reading",
    AnomalyKind.DUPLICATE_READING: "Corrected check-in and check-out odometer records",
    AnomalyKind.IMPOSSIBLE_JUMP: "Trip evidence supporting high mileage between rentals",
    AnomalyKind.MISSING_READING: "Missing check-in and check-out odometer readings",
}

ANOMALY_RISK = {
    AnomalyKind.ODOMETER_ROLLBACK: "Odometer rollback detected",
    AnomalyKind.DUPLICATE_READING: "Duplicate odometer readings",
    AnomalyKind.IMPOSSIBLE_JUMP: "Implausible mileage between rentals",
    AnomalyKind.MISSING_READING: "Incomplete odometer history",
}

ISSUE_DOCUMENTATION = {
    ReadinessIssue.MISSING_OWNER: "Proof of registered ownership",
    ReadinessIssue.MISSING_VIN: "Vehicle identification number (VIN)",
    ReadinessIssue.MISSING_PLATE: "License plate registration",
    ReadinessIssue.SERVICE_OVERDUE: "Service record showing completed maintenance",
    ReadinessIssue.INSPECTION_EXPIRED: "Current safety inspection certificate",
}

ISSUE_RISK = {
    ReadinessIssue.MISSING_OWNER: "Incomplete vehicle documentation",
    ReadinessIssue.MISSING_VIN: "Incomplete vehicle documentation",
    ReadinessIssue.MISSING_PLATE: "Incomplete vehicle documentation",
    ReadinessIssue.SERVICE_OVERDUE: "Service overdue",
    ReadinessIssue.INSPECTION_EXPIRED: "Inspection expired",
}


@dataclass(frozen=True)
class InsuranceImpact:
    claim_approval_likelihood: int
    processing_speed: ProcessingSpeed
    required_documentation: Tuple[str, ...] = ()
    risk_factors: Tuple[str, ...] = ()


def _add(items: List[str], text: str) -> None:
    if text not in items:
        items.append(text)


def calc_processing_speed(score: int, ready: bool, risk_level: RiskLevel) -> ProcessingSpeed:
    if risk_level is RiskLevel.CRITICAL:
        return ProcessingSpeed.MANUAL_REVIEW
    if score >= FAST_TRACK_MIN_SCORE and ready:
        return ProcessingSpeed.FAST
    if score < SLOW_BELOW_SCORE:
        return ProcessingSpeed.SLOW
    return ProcessingSpeed.NORMAL


def estimate_insurance_impact(intelligence: VehicleIntelligence) -> InsuranceImpact:
    """
    Project an intelligence snapshot onto claim-processing expectations.

    Reads only what the snapshot already holds; nothing is recomputed.
    """
    score = intelligence.compliance_score
    ready = intelligence.readiness.ready
    likelihood = int(clamp(round(score * 0.6 + (40 if ready else 20)), 0, 100))
    speed = calc_processing_speed(score, ready, intelligence.risk_level)

    documentation: List[str] = []
    risk_factors: List[str] = []
    forensics = intelligence.forensics

    if forensics.violation_count:
        _add(documentation, "Written statement of vehicle use for violation-level gaps")
        _add(risk_factors, f"{forensics.violation_count} violation-level mileage gap(s)")
    other_flagged = forensics.flagged_gap_count - forensics.violation_count
    if other_flagged:
        _add(documentation, "Trip logs explaining mileage gaps above the policy allowance")
        _add(risk_factors, f"{other_flagged} mileage gap(s) above policy allowance")

    for kind in forensics.anomaly_kinds:
        _add(documentation, ANOMALY_DOCUMENTATION[kind])
        _add(risk_factors, ANOMALY_RISK[kind])

    for issue in intelligence.readiness.issue_codes:
        if issue in ISSUE_DOCUMENTATION:
            _add(documentation, ISSUE_DOCUMENTATION[issue])
            _add(risk_factors, ISSUE_RISK[issue])

    return InsuranceImpact(
        claim_approval_likelihood=likelihood,
        processing_speed=speed,
        required_documentation=tuple(documentation),
        risk_factors=tuple(risk_factors),
    )
