"""Usage policy table: per-category mileage gap tolerances."""

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from .config import load_policy_document
from .errors import ConfigurationError

RENTAL_ONLY = "RentalOnly"
MIXED = "Mixed"
BUSINESS = "Business"


@dataclass(frozen=True)
class UsagePolicy:
    """Gap tolerances and explanatory text for one usage category."""

    category: str
    max_gap: float
    warning_threshold: float
    critical_threshold: float
    label: Optional[str] = None
    check_impossible_jumps: bool = False
    description: str = ""
    insurance_note: str = ""
    tax_note: str = ""

    def __post_init__(self):
        if not (
            0 <= self.max_gap < self.warning_threshold < self.critical_threshold
        ):
            raise ConfigurationError(
                f"Policy '{self.category}' thresholds must satisfy "
                f"0 <= maxGap < warningThreshold < criticalThreshold "
                f"(got {self.max_gap}, {self.warning_threshold}, "
                f"{self.critical_threshold})"
            )

    @property
    def display_name(self) -> str:
        return self.label or self.category

    def allows(self, gap_miles: float) -> bool:
        """Check if a gap is within the tolerated miles between rentals."""
        return gap_miles <= self.max_gap

    @classmethod
    def from_dict(cls, category: str, dct: Mapping[str, Any]) -> "UsagePolicy":
        """Build from a camelCase policy document entry."""
        return cls(
            category=category,
            max_gap=dct["maxGap"],
            warning_threshold=dct["warningThreshold"],
            critical_threshold=dct["criticalThreshold"],
            label=dct.get("label"),
            check_impossible_jumps=dct.get("checkImpossibleJumps", False),
            description=dct.get("description", ""),
            insurance_note=dct.get("insuranceNote", ""),
            tax_note=dct.get("taxNote", ""),
        )


class UsagePolicyTable:
    """Read-only mapping of usage category -> UsagePolicy."""

    def __init__(
        self,
        policies: Mapping[str, UsagePolicy],
        version: str = "unversioned",
        default_category: str = RENTAL_ONLY,
    ):
        if not policies:
            raise ConfigurationError("Usage policy table is empty")
        self._policies = MappingProxyType(dict(policies))
        self.version = version
        self.default_category = (
            default_category if default_category in self._policies
            else next(iter(self._policies))
        )

    def __contains__(self, category: object) -> bool:
        return category in self._policies

    def __iter__(self) -> Iterator[UsagePolicy]:
        return iter(self._policies.values())

    def __len__(self) -> int:
        return len(self._policies)

    @property
    def categories(self) -> List[str]:
        return list(self._policies)

    def get(self, category: str) -> UsagePolicy:
        """Look up a policy; unknown categories raise ConfigurationError."""
        try:
            return self._policies[category]
        except (KeyError, TypeError):
            raise ConfigurationError(
                f"Unknown usage category '{category}' "
                f"(expected one of: {', '.join(self._policies)})"
            ) from None

    def get_or_default(self, category: Optional[str]) -> UsagePolicy:
        """Look up a policy, falling back to the default category."""
        if category in self._policies:
            return self._policies[category]
        return self._policies[self.default_category]

    def fitting_categories(self, average_gap: float) -> List[str]:
        """
        Categories whose allowance covers the observed average gap,
        tightest allowance first.
        """
        fits = [p for p in self._policies.values() if p.allows(average_gap)]
        return [p.category for p in sorted(fits, key=lambda p: p.max_gap)]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UsagePolicyTable":
        """Build from a validated policy document."""
        policies: Dict[str, UsagePolicy] = {
            category: UsagePolicy.from_dict(category, entry)
            for category, entry in data["categories"].items()
        }
        return cls(policies, version=str(data["version"]))


def load_policy_table(filename: Union[str, Path, None] = None) -> UsagePolicyTable:
    """Load a policy table from YAML (the bundled policies.yaml by default)."""
    return UsagePolicyTable.from_dict(load_policy_document(filename))


@lru_cache(maxsize=1)
def default_policy_table() -> UsagePolicyTable:
    """The bundled canonical policy table."""
    return load_policy_table()
