"""Per-vehicle inputs: current odometer, declared usage, documentation."""

from datetime import date, datetime
from typing import Optional, Union

from dateutil import parser as date_parser

from .booking import as_utc

DateInput = Union[str, date, None]


def parse_date(value: DateInput) -> Optional[date]:
    """Accept a date, datetime or ISO 8601 text (date or timestamp)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date_parser.isoparse(str(value)).date()


def parse_timestamp(value: DateInput) -> Optional[datetime]:
    """Like parse_date, but keeps the time of day (as UTC)."""
    if value is None or value == "":
        return None
    if not isinstance(value, date):
        value = date_parser.isoparse(str(value))
    return as_utc(value)


class DocumentationFlags:
    """Documentation and maintenance state relevant to insurance claims."""

    def __init__(
        self,
        has_registered_owner: bool = False,
        has_vin: bool = False,
        has_license_plate: bool = False,
        service_overdue: bool = False,
        inspection_expired: bool = False,
    ):
        self.has_registered_owner = has_registered_owner
        self.has_vin = has_vin
        self.has_license_plate = has_license_plate
        self.service_overdue = service_overdue
        self.inspection_expired = inspection_expired

    @property
    def is_complete(self) -> bool:
        """Owner, VIN and plate are all on file."""
        return self.has_registered_owner and self.has_vin and self.has_license_plate


class VehicleUsageContext:
    """
    Everything the engine needs to know about one vehicle.

    Date fields accept ISO 8601 text and are stored as ``date`` (or, for
    the last completed booking, an aware UTC ``datetime``). Unparseable
    text raises ValueError here, at construction.
    """

    def __init__(
        self,
        vehicle_id: str,
        current_mileage: int,
        usage_category: str,
        documentation: Optional[DocumentationFlags] = None,
        last_completed_booking_end_mileage: Optional[int] = None,
        last_completed_booking_end_date: DateInput = None,
        as_of_date: DateInput = None,
        last_service_date: DateInput = None,
        service_interval_months: Optional[float] = None,
    ):
        self.vehicle_id = str(vehicle_id)
        self.current_mileage = current_mileage
        self.usage_category = usage_category
        self.documentation = documentation or DocumentationFlags()
        self.last_completed_booking_end_mileage = last_completed_booking_end_mileage
        self.last_completed_booking_end_date = parse_timestamp(
            last_completed_booking_end_date
        )
        self.as_of_date = parse_date(as_of_date)
        self.last_service_date = parse_date(last_service_date)
        self.service_interval_months = service_interval_months

    def as_of(self, default: date) -> date:
        """Reference date for service metrics, ``default`` if not set."""
        return self.as_of_date or default
