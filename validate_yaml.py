#!/usr/bin/env python3
"""Validate vehicle usage YAML files against the schema and policy table."""
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Optional

import yaml
from jsonschema import validate, ValidationError

from compliance import ComplianceError, load_policy_table


def load_schema() -> dict:
    """Load the JSON schema from schema.yaml."""
    schema_path = Path(__file__).parent / "schema.yaml"
    with open(schema_path) as f:
        return yaml.safe_load(f)


def load_categories(policy_file: Optional[Path] = None) -> list[str]:
    """Usage categories declared by the policy table (bundled by default)."""
    return load_policy_table(policy_file).categories


def _dates_to_text(value):
    """YAML parses unquoted dates; the schema expects ISO strings."""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _dates_to_text(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_dates_to_text(v) for v in value]
    return value


def check_bookings(data: dict) -> list[str]:
    """Cross-record checks the schema cannot express."""
    errors = []
    seen = set()
    for booking in data.get("bookings") or []:
        booking_id = str(booking["bookingId"])
        if booking_id in seen:
            errors.append(f"Duplicate bookingId: {booking_id}")
        seen.add(booking_id)
    return errors


def validate_vehicle_file(
    filepath: Path, schema: dict, categories: Optional[Iterable[str]] = None
) -> list[str]:
    """
    Validate a single vehicle usage file. Returns list of errors.

    When ``categories`` is given, the vehicle's usageCategory must be one
    of them.
    """
    errors = []
    try:
        with open(filepath) as f:
            data = _dates_to_text(yaml.safe_load(f))
        validate(instance=data, schema=schema)
    except yaml.YAMLError as e:
        errors.append(f"YAML parse error: {e}")
        return errors
    except ValidationError as e:
        errors.append(f"Schema validation error: {e.message}")
        if e.path:
            errors.append(f"  at path: {'.'.join(str(p) for p in e.path)}")
        return errors
    except OSError as e:
        errors.append(f"Error: {e}")
        return errors

    if categories is not None:
        categories = list(categories)
        category = data["vehicle"]["usageCategory"]
        if category not in categories:
            errors.append(
                f"Unknown usage category '{category}' "
                f"(expected one of: {', '.join(categories)})"
            )
    errors.extend(check_bookings(data))
    return errors


def main():
    """Validate all vehicle usage files in the vehicles/ directory."""
    schema = load_schema()
    vehicles_dir = Path(__file__).parent / "vehicles"

    try:
        categories = load_categories()
    except ComplianceError as e:
        print(f"Error: {e}")
        return 1

    if not vehicles_dir.exists():
        print(f"Error: vehicles directory not found: {vehicles_dir}")
        return 1

    yaml_files = list(vehicles_dir.glob("*.yaml")) + list(vehicles_dir.glob("*.yml"))

    if not yaml_files:
        print(f"Warning: No YAML files found in {vehicles_dir}")
        return 0

    all_valid = True
    for filepath in sorted(yaml_files):
        errors = validate_vehicle_file(filepath, schema, categories)
        if errors:
            print(f"FAIL: {filepath.name}")
            for error in errors:
                print(f"  {error}")
            all_valid = False
        else:
            print(f"OK: {filepath.name}")

    return 0 if all_valid else 1


if __name__ == "__main__":
    sys.exit(main())
