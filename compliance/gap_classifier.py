"""Classify a single mileage gap against a usage category's tolerances."""

import math
from dataclasses import dataclass
from typing import Optional

from .errors import InvalidGapError
from .severity import Severity
from .usage_policy import UsagePolicy, UsagePolicyTable, default_policy_table

MESSAGES = {
    Severity.NORMAL: "Within {category} allowance of {max_gap:g} miles",
    Severity.WARNING: "{gap:,.0f} miles exceeds limit - requires explanation",
    Severity.CRITICAL: "{gap:,.0f} miles is a significant gap - may affect insurance claims",
    Severity.VIOLATION: "{gap:,.0f} miles is a severe violation - insurance coverage at risk",
}


@dataclass(frozen=True)
class GapClassification:
    severity: Severity
    message: str


def severity_for_gap(gap_miles: float, policy: UsagePolicy) -> Severity:
    """
    Determine the severity tier for a gap.

    Ties go to the less severe tier:
    - gap <= max_gap: NORMAL
    - gap <= warning_threshold: WARNING
    - gap <= critical_threshold: CRITICAL
    - otherwise: VIOLATION
    """
    if gap_miles is None or math.isnan(gap_miles) or gap_miles < 0:
        raise InvalidGapError(f"Gap must be a non-negative number (got {gap_miles})")
    if gap_miles <= policy.max_gap:
        return Severity.NORMAL
    if gap_miles <= policy.warning_threshold:
        return Severity.WARNING
    if gap_miles <= policy.critical_threshold:
        return Severity.CRITICAL
    return Severity.VIOLATION


def classify_gap(
    gap_miles: float, category: str, table: Optional[UsagePolicyTable] = None
) -> GapClassification:
    """Classify a gap for a usage category; unknown categories raise."""
    policy = (table or default_policy_table()).get(category)
    severity = severity_for_gap(gap_miles, policy)
    message = MESSAGES[severity].format(
        gap=gap_miles, category=policy.display_name, max_gap=policy.max_gap
    )
    return GapClassification(severity=severity, message=message)
