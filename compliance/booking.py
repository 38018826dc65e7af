"""Booking odometer records derived from completed reservations."""

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Optional, Union

DateLike = Union[datetime, date]


class BookingStatus(Enum):
    """Reservation lifecycle states. Only COMPLETED bookings are analysed."""

    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "NoShow"

    @classmethod
    def parse(cls, value: Union[str, "BookingStatus"]) -> "BookingStatus":
        """Parse a status name case-insensitively ('completed', 'NO_SHOW', ...)."""
        if isinstance(value, cls):
            return value
        wanted = str(value).replace("_", "").replace("-", "").lower()
        for status in cls:
            if status.value.lower() == wanted:
                return status
        raise ValueError(f"Unknown booking status '{value}'")


def as_utc(value: Optional[DateLike]) -> Optional[datetime]:
    """Normalize a date/datetime to an aware UTC datetime (naive = UTC)."""
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class BookingOdometerRecord:
    """Odometer readings captured at check-in and check-out of one booking."""

    def __init__(
        self,
        booking_id: str,
        start_date: DateLike,
        end_date: Optional[DateLike] = None,
        start_mileage: Optional[int] = None,
        end_mileage: Optional[int] = None,
        status: Union[str, BookingStatus] = BookingStatus.COMPLETED,
    ):
        self.booking_id = str(booking_id)
        self.start_date = as_utc(start_date)
        self.end_date = as_utc(end_date)
        # None means unread; never coerce to zero
        self.start_mileage = start_mileage
        self.end_mileage = end_mileage
        self.status = BookingStatus.parse(status)

    def __repr__(self) -> str:
        return (
            f"BookingOdometerRecord({self.booking_id!r}, "
            f"{self.start_mileage}->{self.end_mileage}, {self.status.value})"
        )

    @property
    def is_completed(self) -> bool:
        return self.status is BookingStatus.COMPLETED

    @property
    def has_readings(self) -> bool:
        """Both check-in and check-out odometer values are known."""
        return self.start_mileage is not None and self.end_mileage is not None

    @property
    def trip_miles(self) -> Optional[int]:
        """Miles driven during the booking, if both readings are known."""
        if not self.has_readings:
            return None
        return self.end_mileage - self.start_mileage

    @property
    def released_at(self) -> datetime:
        """When the vehicle came back to the owner (end, else start)."""
        return self.end_date or self.start_date
