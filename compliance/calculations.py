"""Helper functions for gap, rate and service calculations."""

from datetime import date, datetime
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

SECONDS_PER_DAY = 86400


def calc_raw_gap(previous_end_mileage: int, next_start_mileage: int) -> int:
    """Odometer miles between check-out of one booking and check-in of the next.

    May be negative; callers treat that as a rollback.
    """
    return next_start_mileage - previous_end_mileage


def calc_elapsed_days(since: Optional[datetime], until: Optional[datetime]) -> Optional[float]:
    """Calendar days between two timestamps, None if either is unknown."""
    if since is None or until is None:
        return None
    return (until - since).total_seconds() / SECONDS_PER_DAY


def calc_miles_per_day(miles: float, elapsed_days: Optional[float]) -> float:
    """
    Average miles per day over an interval.

    Intervals shorter than a day (or unknown/negative) count as one day.
    """
    if elapsed_days is None or elapsed_days < 1:
        elapsed_days = 1.0
    return miles / elapsed_days


def calc_average(values: Iterable[float]) -> float:
    """Arithmetic mean, 0 when empty."""
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def calc_due_date(
    last_date: Optional[date], interval_months: Optional[float]
) -> Optional[date]:
    """Calculate next due date: last + interval months."""
    if interval_months is None or last_date is None:
        return None
    months = int(interval_months)
    days = int((interval_months - months) * 30)
    return last_date + relativedelta(months=months, days=days)
