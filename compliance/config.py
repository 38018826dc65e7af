"""Engine configuration and policy document loading."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from jsonschema import ValidationError, validate

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_POLICY_FILE = Path(__file__).parent / "policies.yaml"

_CATEGORY_SCHEMA = {
    "type": "object",
    "required": ["maxGap", "warningThreshold", "criticalThreshold"],
    "properties": {
        "label": {"type": "string"},
        "maxGap": {"type": "number", "minimum": 0},
        "warningThreshold": {"type": "number", "minimum": 0},
        "criticalThreshold": {"type": "number", "minimum": 0},
        "checkImpossibleJumps": {"type": "boolean"},
        "description": {"type": "string"},
        "insuranceNote": {"type": "string"},
        "taxNote": {"type": "string"},
    },
    "additionalProperties": False,
}

POLICY_DOCUMENT_SCHEMA = {
    "type": "object",
    "required": ["version", "categories"],
    "properties": {
        "version": {"type": "string", "minLength": 1},
        "engine": {
            "type": "object",
            "properties": {
                "impossibleJumpMilesPerDay": {"type": "number", "exclusiveMinimum": 0},
                "moderateWarningRatio": {"type": "number", "minimum": 0, "maximum": 1},
                "missingReadingRatio": {"type": "number", "minimum": 0, "maximum": 1},
                "minGapsForConfidence": {"type": "integer", "minimum": 0},
                "maxRecommendations": {"type": "integer", "minimum": 1},
            },
            "additionalProperties": False,
        },
        "categories": {
            "type": "object",
            "minProperties": 1,
            "additionalProperties": _CATEGORY_SCHEMA,
        },
    },
    "additionalProperties": False,
}


@dataclass(frozen=True)
class EngineConfig:
    """Tunables for the forensics and aggregation steps."""

    impossible_jump_miles_per_day: float = 1000
    moderate_warning_ratio: float = 0.25
    missing_reading_ratio: float = 0.25
    min_gaps_for_confidence: int = 2
    max_recommendations: int = 5

    @classmethod
    def from_dict(cls, dct: Optional[Dict[str, Any]]) -> "EngineConfig":
        """Build from the camelCase ``engine`` section of a policy document."""
        dct = dct or {}
        defaults = cls()
        return cls(
            impossible_jump_miles_per_day=dct.get(
                "impossibleJumpMilesPerDay", defaults.impossible_jump_miles_per_day
            ),
            moderate_warning_ratio=dct.get(
                "moderateWarningRatio", defaults.moderate_warning_ratio
            ),
            missing_reading_ratio=dct.get(
                "missingReadingRatio", defaults.missing_reading_ratio
            ),
            min_gaps_for_confidence=dct.get(
                "minGapsForConfidence", defaults.min_gaps_for_confidence
            ),
            max_recommendations=dct.get(
                "maxRecommendations", defaults.max_recommendations
            ),
        )


def load_policy_document(filename: Union[str, Path, None] = None) -> Dict[str, Any]:
    """
    Load and validate a policy document.

    Raises ConfigurationError if the file is missing, is not valid YAML,
    or does not match POLICY_DOCUMENT_SCHEMA.
    """
    path = Path(filename) if filename is not None else DEFAULT_POLICY_FILE
    try:
        with open(path) as fp:
            data = yaml.safe_load(fp)
    except OSError as e:
        raise ConfigurationError(f"Cannot read policy file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Policy file {path} is not valid YAML: {e}") from e

    try:
        validate(instance=data, schema=POLICY_DOCUMENT_SCHEMA)
    except ValidationError as e:
        where = ".".join(str(p) for p in e.path)
        raise ConfigurationError(
            f"Policy file {path} is invalid at '{where}': {e.message}"
        ) from e

    logger.debug("Loaded policy document %s (version %s)", path, data["version"])
    return data


def load_engine_config(filename: Union[str, Path, None] = None) -> EngineConfig:
    """Load EngineConfig from a policy document (defaults if no engine section)."""
    return EngineConfig.from_dict(load_policy_document(filename).get("engine"))
