"""Exceptions raised by the compliance engine.

Only configuration and programming errors are raised. Data-quality
problems are reported as anomalies, alerts and recommendations.
"""


class ComplianceError(Exception):
    """Base class for compliance engine errors."""


class ConfigurationError(ComplianceError):
    """Unknown usage category or malformed policy configuration."""


class InvalidGapError(ComplianceError, ValueError):
    """A mileage gap that cannot be classified (negative or not a number)."""


class InputFileError(ComplianceError):
    """A vehicle usage file that cannot be read or parsed."""
