"""Plain-dict projections of engine results for JSON output."""

from dataclasses import fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List

from .forensics import MileageGap
from .insurance import InsuranceImpact
from .intelligence import VehicleIntelligence


def _plain(value: Any) -> Any:
    """Recursively convert dataclasses, enums, tuples and dates to JSON types."""
    if is_dataclass(value):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    return value


def intelligence_to_dict(intelligence: VehicleIntelligence) -> Dict[str, Any]:
    """Serialize a snapshot, including derived summary figures."""
    data = _plain(intelligence)
    forensics = intelligence.forensics
    data["forensics"].update(
        {
            "totalGaps": forensics.flagged_gap_count,
            "maxGap": forensics.max_gap_size,
            "unauthorizedMileage": forensics.unauthorized_mileage,
        }
    )
    data["readiness"]["issues"] = list(intelligence.readiness.issues)
    return data


def gaps_to_list(gaps: Iterable[MileageGap]) -> List[Dict[str, Any]]:
    return [_plain(gap) for gap in gaps]


def impact_to_dict(impact: InsuranceImpact) -> Dict[str, Any]:
    return _plain(impact)
