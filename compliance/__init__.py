"""
Vehicle usage compliance and mileage forensics.

This package inspects a vehicle's completed bookings and odometer readings
against its declared usage category:
- UsagePolicyTable: per-category gap tolerances (policies.yaml)
- classify_gap: severity tier for a single mileage gap
- ForensicsAnalyzer: gaps, anomalies, risk level and recommendations
- score_compliance: 0-100 score and status band
- VehicleIntelligenceAggregator: the consolidated per-vehicle snapshot
- estimate_insurance_impact: claim approval and processing expectations
"""

from .severity import Severity, RiskLevel, ComplianceStatus
from .errors import ComplianceError, ConfigurationError, InvalidGapError, InputFileError
from .clock import utc_now, fixed_clock
from .config import EngineConfig, load_engine_config, load_policy_document
from .usage_policy import (
    RENTAL_ONLY,
    MIXED,
    BUSINESS,
    UsagePolicy,
    UsagePolicyTable,
    load_policy_table,
    default_policy_table,
)
from .booking import BookingStatus, BookingOdometerRecord
from .vehicle_context import DocumentationFlags, VehicleUsageContext
from .gap_classifier import GapClassification, classify_gap, severity_for_gap
from .forensics import (
    CURRENT,
    LAST_COMPLETED,
    AnomalyKind,
    Anomaly,
    MileageGap,
    ForensicsReport,
    ForensicsAnalyzer,
)
from .scorer import ComplianceScore, score_compliance, status_for_score
from .alerts import Alert, AlertSeverity, AlertCategory, ActionKind
from .intelligence import (
    ReadinessIssue,
    InsuranceReadiness,
    ServiceMetrics,
    VehicleIntelligence,
    VehicleIntelligenceAggregator,
)
from .insurance import ProcessingSpeed, InsuranceImpact, estimate_insurance_impact
from .report import intelligence_to_dict, impact_to_dict, gaps_to_list
from .loader import load_usage_file

__all__ = [
    "Severity",
    "RiskLevel",
    "ComplianceStatus",
    "ComplianceError",
    "ConfigurationError",
    "InvalidGapError",
    "InputFileError",
    "utc_now",
    "fixed_clock",
    "EngineConfig",
    "load_engine_config",
    "load_policy_document",
    "RENTAL_ONLY",
    "MIXED",
    "BUSINESS",
    "UsagePolicy",
    "UsagePolicyTable",
    "load_policy_table",
    "default_policy_table",
    "BookingStatus",
    "BookingOdometerRecord",
    "DocumentationFlags",
    "VehicleUsageContext",
    "GapClassification",
    "classify_gap",
    "severity_for_gap",
    "CURRENT",
    "LAST_COMPLETED",
    "AnomalyKind",
    "Anomaly",
    "MileageGap",
    "ForensicsReport",
    "ForensicsAnalyzer",
    "ComplianceScore",
    "score_compliance",
    "status_for_score",
    "Alert",
    "AlertSeverity",
    "AlertCategory",
    "ActionKind",
    "ReadinessIssue",
    "InsuranceReadiness",
    "ServiceMetrics",
    "VehicleIntelligence",
    "VehicleIntelligenceAggregator",
    "ProcessingSpeed",
    "InsuranceImpact",
    "estimate_insurance_impact",
    "intelligence_to_dict",
    "impact_to_dict",
    "gaps_to_list",
    "load_usage_file",
]
