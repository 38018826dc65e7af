"""Actionable alerts attached to a vehicle intelligence snapshot."""

from dataclasses import dataclass
from enum import Enum


class AlertSeverity(Enum):
    CRITICAL = "Critical"
    WARNING = "Warning"
    INFO = "Info"


class AlertCategory(Enum):
    COMPLIANCE = "Compliance"
    DATA_INTEGRITY = "DataIntegrity"
    MAINTENANCE = "Maintenance"
    INSURANCE = "Insurance"


class ActionKind(Enum):
    """Next step suggested to the owner. The UI layer maps these to routes."""

    REVIEW_ANOMALIES = "ReviewAnomalies"
    EXPLAIN_MILEAGE_GAP = "ExplainMileageGap"
    SCHEDULE_SERVICE = "ScheduleService"
    RENEW_INSPECTION = "RenewInspection"
    COMPLETE_DOCUMENTATION = "CompleteDocumentation"
    UPDATE_USAGE_DECLARATION = "UpdateUsageDeclaration"


@dataclass(frozen=True)
class Alert:
    severity: AlertSeverity
    category: AlertCategory
    title: str
    message: str
    action: ActionKind
