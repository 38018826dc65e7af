"""Vehicle intelligence: the consolidated compliance snapshot for one vehicle."""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .alerts import ActionKind, Alert, AlertCategory, AlertSeverity
from .booking import BookingOdometerRecord
from .calculations import calc_due_date
from .clock import Clock, utc_now
from .config import EngineConfig
from .forensics import ForensicsAnalyzer, ForensicsReport
from .scorer import URGENT_PREFIX, ComplianceScore, score_compliance
from .severity import RiskLevel, Severity
from .usage_policy import UsagePolicy, UsagePolicyTable, default_policy_table
from .vehicle_context import VehicleUsageContext

logger = logging.getLogger(__name__)


class ReadinessIssue(Enum):
    """Reasons a vehicle is not ready for fast-tracked claims."""

    MISSING_OWNER = "Registered owner not on file"
    MISSING_VIN = "VIN not on file"
    MISSING_PLATE = "License plate not on file"
    SERVICE_OVERDUE = "Scheduled service is overdue"
    INSPECTION_EXPIRED = "Safety inspection has expired"
    CRITICAL_RISK = "Mileage history shows critical risk"


@dataclass(frozen=True)
class InsuranceReadiness:
    ready: bool
    issue_codes: Tuple[ReadinessIssue, ...] = ()

    @property
    def issues(self) -> Tuple[str, ...]:
        return tuple(issue.value for issue in self.issue_codes)


@dataclass(frozen=True)
class ServiceMetrics:
    """Informational service timing; does not affect readiness."""

    last_service_date: Optional[str] = None
    days_since_last_service: Optional[int] = None
    next_service_date: Optional[str] = None
    days_until_service: Optional[int] = None
    is_overdue: bool = False


@dataclass(frozen=True)
class VehicleIntelligence:
    """Immutable snapshot returned to callers; rebuilt on every request."""

    vehicle_id: str
    usage_category: str
    policy: UsagePolicy
    policy_version: str
    forensics: ForensicsReport
    compliance: ComplianceScore
    readiness: InsuranceReadiness
    alerts: Tuple[Alert, ...]
    recommendations: Tuple[str, ...]
    service: ServiceMetrics
    last_updated: datetime

    @property
    def compliance_score(self) -> int:
        return self.compliance.score

    @property
    def risk_level(self) -> RiskLevel:
        return self.forensics.risk_level

    @property
    def completed_trips(self) -> int:
        return self.forensics.completed_trips


def evaluate_readiness(
    vehicle: VehicleUsageContext, risk_level: RiskLevel
) -> InsuranceReadiness:
    """Ready only when documentation is complete and risk is not CRITICAL."""
    docs = vehicle.documentation
    checks = (
        (docs.has_registered_owner, ReadinessIssue.MISSING_OWNER),
        (docs.has_vin, ReadinessIssue.MISSING_VIN),
        (docs.has_license_plate, ReadinessIssue.MISSING_PLATE),
        (not docs.service_overdue, ReadinessIssue.SERVICE_OVERDUE),
        (not docs.inspection_expired, ReadinessIssue.INSPECTION_EXPIRED),
        (risk_level is not RiskLevel.CRITICAL, ReadinessIssue.CRITICAL_RISK),
    )
    issues = tuple(issue for passed, issue in checks if not passed)
    return InsuranceReadiness(ready=not issues, issue_codes=issues)


def calc_service_metrics(vehicle: VehicleUsageContext, today: date) -> ServiceMetrics:
    """Days since/until service relative to the vehicle's as-of date."""
    if not vehicle.last_service_date:
        return ServiceMetrics()
    as_of = vehicle.as_of(today)
    last = vehicle.last_service_date
    due = calc_due_date(last, vehicle.service_interval_months)
    return ServiceMetrics(
        last_service_date=last.isoformat(),
        days_since_last_service=(as_of - last).days,
        next_service_date=due.isoformat() if due else None,
        days_until_service=(due - as_of).days if due else None,
        is_overdue=bool(due and as_of > due),
    )


def build_alerts(
    vehicle: VehicleUsageContext,
    forensics: ForensicsReport,
    readiness: InsuranceReadiness,
) -> List[Alert]:
    alerts: List[Alert] = []
    for anomaly in forensics.anomalies:
        alerts.append(
            Alert(
                severity=AlertSeverity.CRITICAL,
                category=AlertCategory.DATA_INTEGRITY,
                title=f"Odometer anomaly: {anomaly.kind.value}",
                message=anomaly.detail,
                action=ActionKind.REVIEW_ANOMALIES,
            )
        )
    for gap in forensics.gaps:
        if gap.severity is Severity.VIOLATION:
            alerts.append(
                Alert(
                    severity=AlertSeverity.CRITICAL,
                    category=AlertCategory.COMPLIANCE,
                    title=f"Usage violation after {gap.from_booking_id}",
                    message=gap.message,
                    action=ActionKind.EXPLAIN_MILEAGE_GAP,
                )
            )
    docs = vehicle.documentation
    if docs.service_overdue:
        alerts.append(
            Alert(
                severity=AlertSeverity.WARNING,
                category=AlertCategory.MAINTENANCE,
                title="Service overdue",
                message="Scheduled maintenance is overdue; claims may be delayed",
                action=ActionKind.SCHEDULE_SERVICE,
            )
        )
    if docs.inspection_expired:
        alerts.append(
            Alert(
                severity=AlertSeverity.CRITICAL,
                category=AlertCategory.MAINTENANCE,
                title="Inspection expired",
                message="Safety inspection has expired; renew before the next rental",
                action=ActionKind.RENEW_INSPECTION,
            )
        )
    if not readiness.ready:
        alerts.append(
            Alert(
                severity=AlertSeverity.WARNING,
                category=AlertCategory.INSURANCE,
                title="Not ready for fast-track claims",
                message="; ".join(readiness.issues),
                action=ActionKind.COMPLETE_DOCUMENTATION,
            )
        )
    if forensics.usage_recommendation:
        alerts.append(
            Alert(
                severity=AlertSeverity.INFO,
                category=AlertCategory.COMPLIANCE,
                title=f"Consider declaring {forensics.recommended_category}",
                message=forensics.usage_recommendation,
                action=ActionKind.UPDATE_USAGE_DECLARATION,
            )
        )
    return alerts


def merge_recommendations(
    forensics: ForensicsReport,
    compliance: ComplianceScore,
    limit: int = 5,
) -> List[str]:
    """
    Merge forensic and scoring recommendations.

    Case-insensitive duplicates are dropped. The usage switch comes first,
    then urgent items, then everything else in original order.
    """
    merged: List[str] = []
    seen = set()
    for text in list(forensics.recommendations) + list(compliance.recommendations):
        key = text.strip().lower()
        if key not in seen:
            seen.add(key)
            merged.append(text)

    def priority(text: str) -> int:
        if text == forensics.usage_recommendation:
            return 0
        if text.startswith(URGENT_PREFIX):
            return 1
        return 2

    return sorted(merged, key=priority)[:limit]


class VehicleIntelligenceAggregator:
    """Runs forensics and scoring for one vehicle and assembles the snapshot."""

    def __init__(
        self,
        table: Optional[UsagePolicyTable] = None,
        config: Optional[EngineConfig] = None,
        clock: Clock = utc_now,
    ):
        self.table = table or default_policy_table()
        self.config = config or EngineConfig()
        self.clock = clock
        self.analyzer = ForensicsAnalyzer(self.table, self.config)

    def build(
        self,
        vehicle: VehicleUsageContext,
        bookings: Iterable[BookingOdometerRecord],
    ) -> VehicleIntelligence:
        """
        Build the intelligence snapshot for a vehicle.

        Raises ConfigurationError if the vehicle's usage category is unknown;
        every data problem is reported in the snapshot instead.
        """
        policy = self.table.get(vehicle.usage_category)
        forensics = self.analyzer.analyze(
            list(bookings),
            vehicle.current_mileage,
            vehicle.usage_category,
            vehicle.last_completed_booking_end_mileage,
            vehicle.last_completed_booking_end_date,
        )
        compliance = score_compliance(
            total_gaps=forensics.flagged_gap_count,
            warning_count=forensics.warning_count,
            critical_count=forensics.critical_count,
            violation_count=forensics.violation_count,
            total_completed_trips=forensics.completed_trips,
        )
        readiness = evaluate_readiness(vehicle, forensics.risk_level)
        alerts = build_alerts(vehicle, forensics, readiness)
        recommendations = merge_recommendations(
            forensics, compliance, self.config.max_recommendations
        )
        now = self.clock()
        service = calc_service_metrics(vehicle, now.date())

        logger.info(
            "Vehicle %s (%s): score %d %s, risk %s, %d alerts, ready=%s",
            vehicle.vehicle_id,
            policy.category,
            compliance.score,
            compliance.status.value,
            forensics.risk_level.value,
            len(alerts),
            readiness.ready,
        )

        return VehicleIntelligence(
            vehicle_id=vehicle.vehicle_id,
            usage_category=policy.category,
            policy=policy,
            policy_version=self.table.version,
            forensics=forensics,
            compliance=compliance,
            readiness=readiness,
            alerts=tuple(alerts),
            recommendations=tuple(recommendations),
            service=service,
            last_updated=now,
        )
