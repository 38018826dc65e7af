#!/usr/bin/env python3
"""
Tests for ForensicsAnalyzer.

Covers:
1. Gap computation between consecutive completed bookings and to current
2. Rollback, duplicate, implausible jump and missing reading anomalies
3. Risk level aggregation
4. Recommendations, including the single usage-switch suggestion
"""

from datetime import datetime, timedelta, timezone

import pytest

from compliance import (
    CURRENT,
    LAST_COMPLETED,
    MIXED,
    RENTAL_ONLY,
    AnomalyKind,
    BookingOdometerRecord,
    ConfigurationError,
    EngineConfig,
    ForensicsAnalyzer,
    RiskLevel,
    Severity,
)
from compliance.forensics import assess_risk, MileageGap

BASE = datetime(2024, 3, 1, 9, tzinfo=timezone.utc)


def _booking(booking_id, day, start, end, status="Completed", length=2):
    start_date = BASE + timedelta(days=day)
    return BookingOdometerRecord(
        booking_id, start_date, start_date + timedelta(days=length), start, end, status
    )


def _chain(gaps, trip=100, spacing=7):
    """
    Bookings whose gaps are ``gaps``: one booking per gap, the last gap
    running to the returned current mileage.
    """
    mileage = 1000
    bookings = []
    for i, gap in enumerate(gaps):
        bookings.append(_booking(f"b{i + 1}", i * spacing, mileage, mileage + trip))
        mileage += trip + gap
    return bookings, mileage


@pytest.fixture
def analyzer():
    return ForensicsAnalyzer()


# =============================================================================
# Gap computation
# =============================================================================


class TestGaps:
    """Tests for gap computation and classification."""

    def test_single_booking_normal_gap(self, analyzer):
        """One completed booking, 10 miles to current: low risk, no anomalies."""
        bookings, current = _chain([10])
        report = analyzer.analyze(bookings, current, RENTAL_ONLY)

        assert len(report.gaps) == 1
        gap = report.gaps[0]
        assert gap.from_booking_id == "b1"
        assert gap.to_booking_id == CURRENT
        assert gap.is_final
        assert gap.gap_miles == 10
        assert gap.severity == Severity.NORMAL
        assert report.risk_level == RiskLevel.LOW
        assert report.anomalies == ()
        assert report.completed_trips == 1

    def test_three_bookings_normal_warning_critical(self, analyzer):
        """Gaps 5, 16, 50 map to NORMAL, WARNING, CRITICAL for RentalOnly."""
        bookings, current = _chain([5, 16, 50])
        report = analyzer.analyze(bookings, current, RENTAL_ONLY)

        assert [g.gap_miles for g in report.gaps] == [5, 16, 50]
        assert [g.severity for g in report.gaps] == [
            Severity.NORMAL,
            Severity.WARNING,
            Severity.CRITICAL,
        ]
        assert [(g.from_booking_id, g.to_booking_id) for g in report.gaps] == [
            ("b1", "b2"),
            ("b2", "b3"),
            ("b3", CURRENT),
        ]
        assert report.warning_count == 1
        assert report.critical_count == 1
        assert report.violation_count == 0
        assert report.flagged_gap_count == 2
        assert report.risk_level == RiskLevel.HIGH

    def test_canonical_tiers_above_warning_threshold(self, analyzer):
        """20 and 60 miles fall in CRITICAL and VIOLATION for RentalOnly."""
        bookings, current = _chain([5, 20, 60])
        report = analyzer.analyze(bookings, current, RENTAL_ONLY)
        assert [g.severity for g in report.gaps] == [
            Severity.NORMAL,
            Severity.CRITICAL,
            Severity.VIOLATION,
        ]

    def test_average_max_and_unauthorized(self, analyzer):
        bookings, current = _chain([5, 16, 50])
        report = analyzer.analyze(bookings, current, RENTAL_ONLY)
        assert report.average_gap_size == pytest.approx(71 / 3)
        assert report.max_gap_size == 50
        # (16 - 15) + (50 - 15)
        assert report.unauthorized_mileage == 36

    def test_no_bookings(self, analyzer):
        report = analyzer.analyze([], 5000, RENTAL_ONLY)
        assert report.gaps == ()
        assert report.anomalies == ()
        assert report.average_gap_size == 0
        assert report.max_gap_size == 0
        assert report.risk_level == RiskLevel.LOW

    def test_only_completed_bookings_participate(self, analyzer):
        """Cancelled and active bookings are ignored, even with odd readings."""
        bookings, current = _chain([5, 5])
        bookings.append(_booking("x1", 3, 500, 400, status="Cancelled"))
        bookings.append(_booking("x2", 20, 9000, None, status="Active"))
        report = analyzer.analyze(bookings, current, RENTAL_ONLY)

        assert len(report.gaps) == 2
        assert report.anomalies == ()
        assert report.completed_trips == 2

    def test_unsorted_input_is_resorted(self, analyzer):
        """Input order does not matter; bookings are sorted by start date."""
        bookings, current = _chain([5, 16, 50])
        forward = analyzer.analyze(bookings, current, RENTAL_ONLY)
        backward = analyzer.analyze(list(reversed(bookings)), current, RENTAL_ONLY)
        assert forward == backward

    def test_zero_gap_is_normal(self, analyzer):
        bookings, current = _chain([0, 0])
        report = analyzer.analyze(bookings, current, RENTAL_ONLY)
        assert [g.severity for g in report.gaps] == [Severity.NORMAL, Severity.NORMAL]

    def test_unknown_category_raises(self, analyzer):
        bookings, current = _chain([5])
        with pytest.raises(ConfigurationError):
            analyzer.analyze(bookings, current, "Personal")


class TestLastCompletedBaseline:
    """Tests for the vehicle record's last check-out as the final gap start."""

    def test_no_bookings_uses_record(self, analyzer):
        report = analyzer.analyze([], 1010, RENTAL_ONLY, last_end_mileage=1000)
        assert [(g.from_booking_id, g.to_booking_id, g.gap_miles) for g in report.gaps] == [
            (LAST_COMPLETED, CURRENT, 10)
        ]
        assert report.gaps[0].severity == Severity.NORMAL

    def test_no_bookings_no_record_has_no_gaps(self, analyzer):
        report = analyzer.analyze([], 1010, RENTAL_ONLY)
        assert report.gaps == ()
        assert report.anomalies == ()

    def test_unreadable_booking_named_as_baseline(self, analyzer):
        bookings = [_booking("b1", 0, 990, None)]
        report = analyzer.analyze(bookings, 1010, RENTAL_ONLY, last_end_mileage=1000)
        assert [(g.from_booking_id, g.gap_miles) for g in report.gaps] == [("b1", 10)]

    def test_record_rollback(self, analyzer):
        """Current reading below the recorded check-out is a rollback."""
        report = analyzer.analyze([], 1050, MIXED, last_end_mileage=1100)
        assert report.gaps == ()
        assert len(report.anomalies) == 1
        assert report.anomalies[0].kind == AnomalyKind.ODOMETER_ROLLBACK
        assert report.anomalies[0].related_booking_ids == (LAST_COMPLETED, CURRENT)
        assert report.risk_level == RiskLevel.CRITICAL

    def test_newer_record_replaces_last_readable(self, analyzer):
        """b2 has no check-out reading; the record supplies it."""
        bookings = [
            _booking("b1", 0, 1000, 1100),
            _booking("b2", 7, 1105, None),
        ]
        report = analyzer.analyze(
            bookings,
            1410,
            RENTAL_ONLY,
            last_end_mileage=1400,
            last_end_date=BASE + timedelta(days=9),
        )
        final = [g for g in report.gaps if g.is_final]
        assert [(g.from_booking_id, g.gap_miles) for g in final] == [("b2", 10)]
        assert final[0].severity == Severity.NORMAL

    def test_older_record_ignored(self, analyzer):
        bookings, current = _chain([5])
        report = analyzer.analyze(
            bookings,
            current,
            RENTAL_ONLY,
            last_end_mileage=500,
            last_end_date=BASE - timedelta(days=30),
        )
        assert [(g.from_booking_id, g.gap_miles) for g in report.gaps] == [("b1", 5)]

    def test_undated_record_ignored_when_bookings_readable(self, analyzer):
        bookings, current = _chain([5])
        report = analyzer.analyze(bookings, current, RENTAL_ONLY, last_end_mileage=500)
        assert [g.gap_miles for g in report.gaps] == [5]


# =============================================================================
# Anomalies
# =============================================================================


class TestRollback:
    """Tests for odometer rollback detection."""

    def test_pair_rollback(self, analyzer):
        """Negative raw gap: one anomaly, no gap for the pair."""
        bookings = [
            _booking("b1", 0, 1000, 1100),
            _booking("b2", 7, 1095, 1200),
        ]
        report = analyzer.analyze(bookings, 1200, MIXED)

        assert len(report.anomalies) == 1
        anomaly = report.anomalies[0]
        assert anomaly.kind == AnomalyKind.ODOMETER_ROLLBACK
        assert anomaly.related_booking_ids == ("b1", "b2")
        assert "5" in anomaly.detail
        assert [g for g in report.gaps if g.to_booking_id == "b2"] == []
        assert report.risk_level == RiskLevel.CRITICAL

    def test_rollback_excluded_from_average(self, analyzer):
        bookings = [
            _booking("b1", 0, 1000, 1100),
            _booking("b2", 7, 1050, 1200),
        ]
        report = analyzer.analyze(bookings, 1210, MIXED)
        assert [g.gap_miles for g in report.gaps] == [10]
        assert report.average_gap_size == 10

    def test_current_below_last_checkout(self, analyzer):
        """Current odometer below the last check-out is a rollback, not a gap."""
        bookings, _ = _chain([5, 5])
        report = analyzer.analyze(bookings, 1150, RENTAL_ONLY)

        assert [g for g in report.gaps if g.is_final] == []
        rollbacks = [a for a in report.anomalies if a.kind == AnomalyKind.ODOMETER_ROLLBACK]
        assert len(rollbacks) == 1
        assert rollbacks[0].related_booking_ids == ("b2", CURRENT)

    def test_checkout_below_checkin(self, analyzer):
        """A booking whose own readings go backwards is flagged by itself."""
        bookings = [_booking("b1", 0, 1100, 1000)]
        report = analyzer.analyze(bookings, 1005, RENTAL_ONLY)

        assert report.anomalies[0].kind == AnomalyKind.ODOMETER_ROLLBACK
        assert report.anomalies[0].related_booking_ids == ("b1",)

    def test_out_of_order_dates_surface_as_rollback(self, analyzer):
        """Mileage order inconsistent with date order is anomaly evidence."""
        bookings = [
            _booking("late-but-low", 10, 1000, 1100),
            _booking("early-but-high", 0, 2000, 2100),
        ]
        report = analyzer.analyze(bookings, 2100, MIXED)
        assert any(a.kind == AnomalyKind.ODOMETER_ROLLBACK for a in report.anomalies)


class TestDuplicateReading:
    """Tests for duplicate check-in readings."""

    def test_duplicate_without_rollback(self, analyzer):
        """Same check-in reading on a zero-mile trip: duplicate only."""
        bookings = [
            _booking("b1", 0, 1000, 1000),
            _booking("b2", 7, 1000, 1050),
        ]
        report = analyzer.analyze(bookings, 1055, RENTAL_ONLY)

        assert [a.kind for a in report.anomalies] == [AnomalyKind.DUPLICATE_READING]
        assert [(g.from_booking_id, g.to_booking_id) for g in report.gaps] == [
            ("b2", CURRENT)
        ]

    def test_duplicate_with_rollback(self, analyzer):
        bookings = [
            _booking("b1", 0, 1000, 1100),
            _booking("b2", 7, 1000, 1150),
        ]
        report = analyzer.analyze(bookings, 1150, RENTAL_ONLY)
        assert [a.kind for a in report.anomalies] == [
            AnomalyKind.DUPLICATE_READING,
            AnomalyKind.ODOMETER_ROLLBACK,
        ]


class TestImpossibleJump:
    """Tests for the miles-per-day plausibility check."""

    def test_jump_flagged_for_rental_only(self, analyzer):
        """1500 miles within a day: anomaly plus ordinary classification."""
        bookings = [
            _booking("b1", 0, 1000, 1100, length=1),
            _booking("b2", 1, 2600, 2700),
        ]
        report = analyzer.analyze(bookings, 2700, RENTAL_ONLY)

        jumps = [a for a in report.anomalies if a.kind == AnomalyKind.IMPOSSIBLE_JUMP]
        assert len(jumps) == 1
        assert jumps[0].related_booking_ids == ("b1", "b2")
        pair_gap = report.gaps[0]
        assert pair_gap.gap_miles == 1500
        assert pair_gap.severity == Severity.VIOLATION

    def test_plausible_rate_not_flagged(self, analyzer):
        """1500 miles over three days is 500/day."""
        bookings = [
            _booking("b1", 0, 1000, 1100, length=1),
            _booking("b2", 4, 2600, 2700),
        ]
        report = analyzer.analyze(bookings, 2700, RENTAL_ONLY)
        assert AnomalyKind.IMPOSSIBLE_JUMP not in report.anomaly_kinds

    def test_not_checked_for_mixed(self, analyzer):
        bookings = [
            _booking("b1", 0, 1000, 1100, length=1),
            _booking("b2", 1, 2600, 2700),
        ]
        report = analyzer.analyze(bookings, 2700, MIXED)
        assert AnomalyKind.IMPOSSIBLE_JUMP not in report.anomaly_kinds

    def test_threshold_is_configurable(self):
        analyzer = ForensicsAnalyzer(config=EngineConfig(impossible_jump_miles_per_day=100))
        bookings = [
            _booking("b1", 0, 1000, 1100, length=1),
            _booking("b2", 4, 1500, 1600),
        ]
        report = analyzer.analyze(bookings, 1600, RENTAL_ONLY)
        assert AnomalyKind.IMPOSSIBLE_JUMP in report.anomaly_kinds


class TestMissingReadings:
    """Tests for completed bookings without both odometer readings."""

    def test_small_fraction_excluded_silently(self, analyzer):
        """One of five missing: excluded, no anomaly, confidence note."""
        bookings, current = _chain([5, 5, 5, 5, 5])
        bookings[2] = _booking("b3", 14, 1210, None)
        report = analyzer.analyze(bookings, current, RENTAL_ONLY)

        assert report.excluded_booking_ids == ("b3",)
        assert report.anomalies == ()
        assert report.completed_trips == 5
        assert any("Insufficient odometer history" in r for r in report.recommendations)

    def test_large_fraction_is_anomaly(self, analyzer):
        bookings, current = _chain([5, 5, 5, 5])
        bookings[1] = _booking("b2", 7, None, 1210)
        bookings[2] = _booking("b3", 14, 1215, None)
        report = analyzer.analyze(bookings, current, RENTAL_ONLY)

        missing = [a for a in report.anomalies if a.kind == AnomalyKind.MISSING_READING]
        assert len(missing) == 1
        assert missing[0].related_booking_ids == ("b2", "b3")
        assert report.risk_level == RiskLevel.CRITICAL

    def test_ratio_at_threshold_is_not_anomaly(self, analyzer):
        """Exactly 25% missing stays below the anomaly threshold."""
        bookings, current = _chain([5, 5, 5, 5])
        bookings[3] = _booking("b4", 21, 1315, None)
        report = analyzer.analyze(bookings, current, RENTAL_ONLY)
        assert report.anomalies == ()

    def test_null_reading_never_treated_as_zero(self, analyzer):
        """A missing check-out must not produce a gap from mileage 0."""
        bookings = [
            _booking("b1", 0, 1000, None),
            _booking("b2", 7, 1100, 1200),
        ]
        report = analyzer.analyze(bookings, 1205, MIXED)
        assert [g.gap_miles for g in report.gaps] == [5]


# =============================================================================
# Risk level
# =============================================================================


def _gap(severity, miles=10):
    return MileageGap("a", "b", miles, severity, "")


class TestAssessRisk:
    """Tests for assess_risk."""

    def test_low_when_all_normal(self):
        assert assess_risk([_gap(Severity.NORMAL)] * 3, []) == RiskLevel.LOW

    def test_moderate_when_warning_share_high(self):
        gaps = [_gap(Severity.WARNING), _gap(Severity.NORMAL), _gap(Severity.NORMAL)]
        assert assess_risk(gaps, []) == RiskLevel.MODERATE

    def test_low_when_warning_share_small(self):
        gaps = [_gap(Severity.WARNING)] + [_gap(Severity.NORMAL)] * 4
        assert assess_risk(gaps, []) == RiskLevel.LOW

    def test_high_with_critical_gap(self):
        assert assess_risk([_gap(Severity.CRITICAL)], []) == RiskLevel.HIGH

    def test_critical_with_violation(self):
        assert assess_risk([_gap(Severity.VIOLATION)], []) == RiskLevel.CRITICAL

    def test_critical_with_any_anomaly(self):
        assert assess_risk([], [object()]) == RiskLevel.CRITICAL

    def test_empty_is_low(self):
        assert assess_risk([], []) == RiskLevel.LOW


# =============================================================================
# Recommendations
# =============================================================================


class TestRecommendations:
    """Tests for forensic recommendations."""

    def test_rental_only_high_average_suggests_mixed(self, analyzer):
        """Average gap 80 over 12 trips: exactly one switch, to Mixed."""
        bookings, current = _chain([80] * 12)
        report = analyzer.analyze(bookings, current, RENTAL_ONLY)

        assert report.average_gap_size == 80
        assert report.completed_trips == 12
        switches = [r for r in report.recommendations if r.startswith("Switch usage")]
        assert len(switches) == 1
        assert "Rental & Personal" in switches[0]
        assert report.recommended_category == MIXED
        assert report.recommendations[0] == report.usage_recommendation

    def test_mixed_low_average_suggests_rental_only(self, analyzer):
        bookings, current = _chain([5, 5, 5])
        report = analyzer.analyze(bookings, current, MIXED)
        assert report.recommended_category == RENTAL_ONLY
        assert "cheaper insurance tier" in report.usage_recommendation

    def test_mixed_without_gaps_has_no_switch(self, analyzer):
        report = analyzer.analyze([], 1000, MIXED)
        assert report.recommended_category is None

    def test_rental_only_within_policy_has_no_switch(self, analyzer):
        bookings, current = _chain([5, 10, 12])
        report = analyzer.analyze(bookings, current, RENTAL_ONLY)
        assert report.recommended_category is None
        assert not any(r.startswith("Switch usage") for r in report.recommendations)

    def test_flagged_gaps_recommendations(self, analyzer):
        bookings, current = _chain([16, 40, 60])
        report = analyzer.analyze(bookings, current, RENTAL_ONLY)
        text = " | ".join(report.recommendations)
        assert "beyond 50 miles" in text
        assert "significant gap" in text
        assert "15-mile Rental Only allowance" in text

    def test_insufficient_data_note(self, analyzer):
        bookings, current = _chain([5])
        report = analyzer.analyze(bookings, current, RENTAL_ONLY)
        assert any("Insufficient odometer history" in r for r in report.recommendations)

    def test_anomaly_review_recommended(self, analyzer):
        bookings = [
            _booking("b1", 0, 1000, 1100),
            _booking("b2", 7, 1095, 1200),
        ]
        report = analyzer.analyze(bookings, 1200, MIXED)
        assert any("1 data integrity anomaly" in r for r in report.recommendations)
