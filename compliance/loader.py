"""YAML loading for vehicle usage files."""

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

import yaml
from dateutil import parser as date_parser

from .booking import BookingOdometerRecord
from .errors import InputFileError
from .vehicle_context import DocumentationFlags, VehicleUsageContext


DOCUMENTATION_KEYS = {
    "hasRegisteredOwner",
    "hasVIN",
    "hasLicensePlate",
    "serviceOverdue",
    "inspectionExpired",
}


def _as_text(value: Any) -> Any:
    """YAML turns unquoted dates into date objects; keep them as ISO text."""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _parse_timestamp(value: Any) -> Any:
    if value is None or isinstance(value, datetime):
        return value
    return date_parser.isoparse(str(value))


def _parse_object(dct: Dict[str, Any]) -> Union[BookingOdometerRecord, VehicleUsageContext, DocumentationFlags, dict]:
    """Parse dictionary into appropriate object type."""
    # Booking record
    if "bookingId" in dct:
        return BookingOdometerRecord(
            dct["bookingId"],
            _parse_timestamp(dct["startDate"]),
            _parse_timestamp(dct.get("endDate")),
            dct.get("startMileage"),
            dct.get("endMileage"),
            dct.get("status", "Completed"),
        )
    # Documentation flags
    elif DOCUMENTATION_KEYS.intersection(dct):
        return DocumentationFlags(
            dct.get("hasRegisteredOwner", False),
            dct.get("hasVIN", False),
            dct.get("hasLicensePlate", False),
            dct.get("serviceOverdue", False),
            dct.get("inspectionExpired", False),
        )
    # Vehicle context
    elif "usageCategory" in dct and "currentMileage" in dct:
        return VehicleUsageContext(
            dct["vehicleId"],
            dct["currentMileage"],
            dct["usageCategory"],
            dct.get("documentation"),
            dct.get("lastCompletedBookingEndMileage"),
            dct.get("lastCompletedBookingEndDate"),
            dct.get("asOfDate"),
            dct.get("lastServiceDate"),
            dct.get("serviceIntervalMonths"),
        )
    else:
        # Return dict as-is for the top-level document
        return dct


def load_usage_file(
    filename: Union[str, Path],
) -> Tuple[VehicleUsageContext, List[BookingOdometerRecord]]:
    """
    Load a vehicle and its bookings from a YAML file.

    Raises InputFileError if the file cannot be read or lacks a vehicle.
    """
    try:
        with open(filename, "rb") as fp:
            raw = yaml.load(fp, Loader=yaml.SafeLoader)
    except OSError as e:
        raise InputFileError(f"Cannot read {filename}: {e}") from e
    except yaml.YAMLError as e:
        raise InputFileError(f"{filename} is not valid YAML: {e}") from e

    if not isinstance(raw, dict) or not isinstance(raw.get("vehicle"), dict):
        raise InputFileError(f"{filename} has no 'vehicle' section")

    try:
        json_data = json.dumps(raw, indent=4, default=_as_text)
        data = json.loads(json_data, object_hook=_parse_object)
    except (KeyError, ValueError, TypeError) as e:
        raise InputFileError(f"{filename} has an invalid record: {e}") from e

    vehicle = data["vehicle"]
    if not isinstance(vehicle, VehicleUsageContext):
        raise InputFileError(
            f"{filename}: vehicle needs vehicleId, currentMileage and usageCategory"
        )
    bookings = data.get("bookings") or []
    return vehicle, bookings
