"""Error taxonomy for the analysis pipeline."""

from __future__ import annotations


class AutoAnovaError(Exception):
    """Base class for all errors raised by autoanova."""


class ConfigurationError(AutoAnovaError, ValueError):
    """Raised for conflicting or invalid analysis options."""


class UnsupportedDesignError(ConfigurationError):
    """Raised when the design shape is outside one-way, two-way or blocked one-way."""


class TransformationError(AutoAnovaError, ValueError):
    """Raised when the response violates the domain of the chosen transformation."""


class InsufficientDataError(AutoAnovaError, ValueError):
    """Raised when a group or block is too small for the requested analysis."""


class TestExecutionError(AutoAnovaError, RuntimeError):
    """Raised when the selected primary test cannot be fit."""

    __test__ = False
