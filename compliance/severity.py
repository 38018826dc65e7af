"""Severity, risk and status enums for usage compliance."""

from enum import Enum


class Severity(Enum):
    """Mileage gap severity tiers. Lower rank = more severe."""

    VIOLATION = "Violation"
    CRITICAL = "Critical"
    WARNING = "Warning"
    NORMAL = "Normal"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @property
    def is_flagged(self) -> bool:
        return self is not Severity.NORMAL


_SEVERITY_RANK = {
    Severity.VIOLATION: 1,
    Severity.CRITICAL: 2,
    Severity.WARNING: 3,
    Severity.NORMAL: 4,
}


class RiskLevel(Enum):
    """Aggregate risk of a vehicle's usage history."""

    CRITICAL = "Critical"
    HIGH = "High"
    MODERATE = "Moderate"
    LOW = "Low"


class ComplianceStatus(Enum):
    """Qualitative band for a compliance score."""

    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    CRITICAL = "Critical"
