"""
Mileage forensics for a single vehicle.

Walks the completed bookings in chronological order, measures the odometer
gap between each check-out and the next check-in (and from the last
check-out to the current reading), classifies every gap against the
vehicle's usage policy, and records data-integrity anomalies.

Data problems never raise: they come back as anomalies, excluded bookings
and recommendations so the result can always be rendered.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from .booking import BookingOdometerRecord, as_utc
from .calculations import (
    calc_average,
    calc_elapsed_days,
    calc_miles_per_day,
    calc_raw_gap,
)
from .config import EngineConfig
from .gap_classifier import classify_gap
from .severity import RiskLevel, Severity
from .usage_policy import (
    MIXED,
    RENTAL_ONLY,
    UsagePolicy,
    UsagePolicyTable,
    default_policy_table,
)

logger = logging.getLogger(__name__)

CURRENT = "current"
LAST_COMPLETED = "last-completed"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class AnomalyKind(Enum):
    ODOMETER_ROLLBACK = "OdometerRollback"
    DUPLICATE_READING = "DuplicateReading"
    IMPOSSIBLE_JUMP = "ImpossibleJump"
    MISSING_READING = "MissingReading"


@dataclass(frozen=True)
class MileageGap:
    """Miles accrued between two bookings (or up to the current reading)."""

    from_booking_id: str
    to_booking_id: str
    gap_miles: float
    severity: Severity
    message: str
    allowance_excess: float = 0

    @property
    def is_final(self) -> bool:
        return self.to_booking_id == CURRENT


@dataclass(frozen=True)
class Anomaly:
    kind: AnomalyKind
    related_booking_ids: Tuple[str, ...]
    detail: str


@dataclass(frozen=True)
class ForensicsReport:
    """Result of analysing one vehicle's booking history."""

    usage_category: str
    gaps: Tuple[MileageGap, ...]
    anomalies: Tuple[Anomaly, ...]
    risk_level: RiskLevel
    recommendations: Tuple[str, ...]
    average_gap_size: float
    completed_trips: int = 0
    excluded_booking_ids: Tuple[str, ...] = ()
    recommended_category: Optional[str] = None
    usage_recommendation: Optional[str] = None

    def count(self, severity: Severity) -> int:
        return sum(1 for g in self.gaps if g.severity is severity)

    @property
    def warning_count(self) -> int:
        return self.count(Severity.WARNING)

    @property
    def critical_count(self) -> int:
        return self.count(Severity.CRITICAL)

    @property
    def violation_count(self) -> int:
        return self.count(Severity.VIOLATION)

    @property
    def flagged_gaps(self) -> Tuple[MileageGap, ...]:
        return tuple(g for g in self.gaps if g.severity.is_flagged)

    @property
    def flagged_gap_count(self) -> int:
        return len(self.flagged_gaps)

    @property
    def max_gap_size(self) -> float:
        return max((g.gap_miles for g in self.gaps), default=0)

    @property
    def unauthorized_mileage(self) -> float:
        """Total miles driven beyond the per-gap allowance."""
        return sum(g.allowance_excess for g in self.gaps)

    @property
    def anomaly_kinds(self) -> List[AnomalyKind]:
        """Distinct anomaly kinds, in order of first appearance."""
        kinds: List[AnomalyKind] = []
        for anomaly in self.anomalies:
            if anomaly.kind not in kinds:
                kinds.append(anomaly.kind)
        return kinds


def _chronological(booking: BookingOdometerRecord):
    return (booking.start_date or _EPOCH, booking.start_mileage, booking.booking_id)


def _plural(n: int, singular: str, plural: Optional[str] = None) -> str:
    return f"{n} {singular if n == 1 else (plural or singular + 's')}"


def assess_risk(
    gaps: Sequence[MileageGap],
    anomalies: Sequence[Anomaly],
    moderate_warning_ratio: float = 0.25,
) -> RiskLevel:
    """
    Aggregate risk level.

    - Any anomaly or VIOLATION gap: CRITICAL
    - Any CRITICAL gap: HIGH
    - WARNING share of gaps >= moderate_warning_ratio: MODERATE
    - Otherwise: LOW
    """
    severities = [g.severity for g in gaps]
    if anomalies or Severity.VIOLATION in severities:
        return RiskLevel.CRITICAL
    if Severity.CRITICAL in severities:
        return RiskLevel.HIGH
    warnings = severities.count(Severity.WARNING)
    if warnings and warnings / len(severities) >= moderate_warning_ratio:
        return RiskLevel.MODERATE
    return RiskLevel.LOW


class ForensicsAnalyzer:
    """Computes mileage gaps and anomalies for one vehicle's bookings."""

    def __init__(
        self,
        table: Optional[UsagePolicyTable] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.table = table or default_policy_table()
        self.config = config or EngineConfig()

    def analyze(
        self,
        bookings: Iterable[BookingOdometerRecord],
        current_mileage: Optional[int],
        usage_category: str,
        last_end_mileage: Optional[int] = None,
        last_end_date: Optional[datetime] = None,
    ) -> ForensicsReport:
        """
        Analyse a vehicle's bookings against its declared usage category.

        Only COMPLETED bookings with both odometer readings take part in gap
        computation. Input order is not trusted; bookings are re-sorted by
        start date.

        ``last_end_mileage``/``last_end_date`` are the vehicle record's own
        last completed check-out. The final gap starts there when no booking
        has both readings, or when that check-out is later than the last
        readable booking.

        Raises ConfigurationError for an unknown usage category.
        """
        policy = self.table.get(usage_category)

        completed = [b for b in bookings if b.is_completed]
        readable = sorted((b for b in completed if b.has_readings), key=_chronological)
        excluded = tuple(
            b.booking_id
            for b in sorted(
                (b for b in completed if not b.has_readings),
                key=lambda b: (b.start_date or _EPOCH, b.booking_id),
            )
        )

        anomalies: List[Anomaly] = []
        gaps: List[MileageGap] = []

        missing = self._check_missing_readings(len(completed), excluded)
        if missing:
            anomalies.append(missing)

        for booking in readable:
            if booking.end_mileage < booking.start_mileage:
                anomalies.append(
                    Anomaly(
                        AnomalyKind.ODOMETER_ROLLBACK,
                        (booking.booking_id,),
                        f"Check-out reading {booking.end_mileage:,} is below "
                        f"check-in reading {booking.start_mileage:,}",
                    )
                )

        for previous, following in zip(readable, readable[1:]):
            pair_anomalies, gap = self._check_pair(previous, following, policy)
            anomalies.extend(pair_anomalies)
            if gap is not None:
                gaps.append(gap)

        last_id, last_end = self._final_baseline(
            readable, completed, last_end_mileage, last_end_date
        )
        if last_end is not None and current_mileage is not None:
            raw = calc_raw_gap(last_end, current_mileage)
            if raw < 0:
                anomalies.append(
                    Anomaly(
                        AnomalyKind.ODOMETER_ROLLBACK,
                        (last_id, CURRENT),
                        f"Current odometer {current_mileage:,} is "
                        f"{-raw:,} miles below check-out of {last_id} "
                        f"({last_end:,})",
                    )
                )
            else:
                gaps.append(self._make_gap(last_id, CURRENT, raw, policy))

        average = calc_average(g.gap_miles for g in gaps)
        risk = assess_risk(gaps, anomalies, self.config.moderate_warning_ratio)
        recommended_category, usage_recommendation = self._usage_switch(
            policy, average, len(gaps)
        )
        recommendations = self._recommendations(
            policy, gaps, anomalies, excluded, usage_recommendation
        )

        for anomaly in anomalies:
            logger.info(
                "%s anomaly (%s): %s",
                anomaly.kind.value,
                ", ".join(anomaly.related_booking_ids),
                anomaly.detail,
            )
        logger.debug(
            "Analysed %d completed bookings (%d excluded) for %s: "
            "%d gaps, %d anomalies, avg gap %.1f, risk %s",
            len(completed),
            len(excluded),
            policy.category,
            len(gaps),
            len(anomalies),
            average,
            risk.value,
        )

        return ForensicsReport(
            usage_category=policy.category,
            gaps=tuple(gaps),
            anomalies=tuple(anomalies),
            risk_level=risk,
            recommendations=tuple(recommendations),
            average_gap_size=average,
            completed_trips=len(completed),
            excluded_booking_ids=excluded,
            recommended_category=recommended_category,
            usage_recommendation=usage_recommendation,
        )

    @staticmethod
    def _final_baseline(
        readable: Sequence[BookingOdometerRecord],
        completed: Sequence[BookingOdometerRecord],
        last_end_mileage: Optional[int],
        last_end_date: Optional[datetime],
    ) -> Tuple[Optional[str], Optional[int]]:
        """Booking id and check-out reading the final gap is measured from."""
        last = readable[-1] if readable else None
        last_end_date = as_utc(last_end_date)
        record_is_newer = (
            last is not None
            and last_end_date is not None
            and last.released_at is not None
            and last_end_date > last.released_at
        )
        if last_end_mileage is not None and (last is None or record_is_newer):
            latest = max(
                completed, key=lambda b: (b.start_date or _EPOCH, b.booking_id), default=None
            )
            if latest is None or latest is last:
                return LAST_COMPLETED, last_end_mileage
            return latest.booking_id, last_end_mileage
        if last is None:
            return None, None
        return last.booking_id, last.end_mileage

    def _make_gap(
        self, from_id: str, to_id: str, miles: float, policy: UsagePolicy
    ) -> MileageGap:
        classification = classify_gap(miles, policy.category, self.table)
        return MileageGap(
            from_booking_id=from_id,
            to_booking_id=to_id,
            gap_miles=miles,
            severity=classification.severity,
            message=classification.message,
            allowance_excess=max(0, miles - policy.max_gap),
        )

    def _check_missing_readings(
        self, completed_count: int, excluded: Tuple[str, ...]
    ) -> Optional[Anomaly]:
        """One MISSING_READING anomaly when too many bookings lack readings."""
        if not excluded or not completed_count:
            return None
        ratio = len(excluded) / completed_count
        if ratio <= self.config.missing_reading_ratio:
            return None
        return Anomaly(
            AnomalyKind.MISSING_READING,
            excluded,
            f"{_plural(len(excluded), 'completed booking')} of {completed_count} "
            f"missing odometer readings ({ratio:.0%})",
        )

    def _check_pair(
        self,
        previous: BookingOdometerRecord,
        following: BookingOdometerRecord,
        policy: UsagePolicy,
    ) -> Tuple[List[Anomaly], Optional[MileageGap]]:
        """Anomalies for a consecutive pair, plus its gap if the pair is sound."""
        pair_ids = (previous.booking_id, following.booking_id)
        raw = calc_raw_gap(previous.end_mileage, following.start_mileage)
        anomalies: List[Anomaly] = []

        if following.start_mileage == previous.start_mileage:
            anomalies.append(
                Anomaly(
                    AnomalyKind.DUPLICATE_READING,
                    pair_ids,
                    f"Bookings share the same check-in reading "
                    f"({following.start_mileage:,})",
                )
            )
        if raw < 0:
            anomalies.append(
                Anomaly(
                    AnomalyKind.ODOMETER_ROLLBACK,
                    pair_ids,
                    f"Odometer went back {-raw:,} miles between check-out of "
                    f"{previous.booking_id} ({previous.end_mileage:,}) and "
                    f"check-in of {following.booking_id} "
                    f"({following.start_mileage:,})",
                )
            )
        if anomalies:
            return anomalies, None

        gap = self._make_gap(previous.booking_id, following.booking_id, raw, policy)

        if policy.check_impossible_jumps:
            elapsed = calc_elapsed_days(previous.released_at, following.start_date)
            rate = calc_miles_per_day(raw, elapsed)
            if rate > self.config.impossible_jump_miles_per_day:
                anomalies.append(
                    Anomaly(
                        AnomalyKind.IMPOSSIBLE_JUMP,
                        pair_ids,
                        f"{raw:,} miles between rentals averages {rate:,.0f} "
                        f"miles/day (limit "
                        f"{self.config.impossible_jump_miles_per_day:,.0f})",
                    )
                )
        return anomalies, gap

    def _usage_switch(
        self, policy: UsagePolicy, average: float, gap_count: int
    ) -> Tuple[Optional[str], Optional[str]]:
        """At most one suggested change of usage declaration."""
        if not gap_count or RENTAL_ONLY not in self.table or MIXED not in self.table:
            return None, None
        rental_only = self.table.get(RENTAL_ONLY)
        mixed = self.table.get(MIXED)

        if policy.category == RENTAL_ONLY and average > rental_only.critical_threshold:
            return MIXED, (
                f"Switch usage declaration to {mixed.display_name}: average gap "
                f"of {average:,.0f} miles exceeds what {rental_only.display_name} "
                f"allows"
            )
        if policy.category == MIXED and average < rental_only.max_gap:
            return RENTAL_ONLY, (
                f"Switch usage declaration to {rental_only.display_name}: average "
                f"gap of {average:,.0f} miles qualifies for the cheaper insurance tier"
            )
        return None, None

    def _recommendations(
        self,
        policy: UsagePolicy,
        gaps: Sequence[MileageGap],
        anomalies: Sequence[Anomaly],
        excluded: Tuple[str, ...],
        usage_recommendation: Optional[str],
    ) -> List[str]:
        recommendations: List[str] = []
        if usage_recommendation:
            recommendations.append(usage_recommendation)

        if anomalies:
            recommendations.append(
                f"Review odometer records: "
                f"{_plural(len(anomalies), 'data integrity anomaly', 'data integrity anomalies')} "
                f"detected"
            )

        violations = sum(1 for g in gaps if g.severity is Severity.VIOLATION)
        criticals = sum(1 for g in gaps if g.severity is Severity.CRITICAL)
        warnings = sum(1 for g in gaps if g.severity is Severity.WARNING)
        if violations:
            recommendations.append(
                f"Document the use behind {_plural(violations, 'gap')} beyond "
                f"{policy.critical_threshold:,g} miles"
            )
        if criticals:
            recommendations.append(
                f"Add trip notes for {_plural(criticals, 'significant gap')} "
                f"before filing any claim"
            )
        if warnings:
            recommendations.append(
                f"Explain {_plural(warnings, 'gap')} above the "
                f"{policy.max_gap:,g}-mile {policy.display_name} allowance"
            )

        if excluded or len(gaps) < self.config.min_gaps_for_confidence:
            recommendations.append(
                "Insufficient odometer history to score confidently: record "
                "check-in and check-out mileage on every trip"
            )
        return recommendations
