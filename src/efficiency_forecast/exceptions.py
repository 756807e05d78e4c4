"""Custom exceptions for efficiency forecasting.

This module defines the exception hierarchy for invalid tracker parameters,
caller-facing configuration validation, and cancelled ensemble runs.
"""

from typing import Any, Optional


class EfficiencyForecastError(Exception):
    """Base exception for all efficiency forecasting errors."""

    pass


class InvalidParameterError(EfficiencyForecastError, ValueError):
    """Exception raised when a tracker is constructed with out-of-range parameters."""

    pass


class ValidationError(EfficiencyForecastError, ValueError):
    """Exception raised when caller-supplied input fails validation."""

    pass


class ConfigValidationError(ValidationError):
    """Exception raised when a simulation configuration has invalid values.

    Attributes:
        errors: Every problem found, so they can be reported together
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid simulation configuration: " + "; ".join(self.errors))


class SimulationCancelledError(EfficiencyForecastError):
    """Exception raised when an ensemble run is cancelled before completion.

    Attributes:
        completed: Outcomes of the runs that finished before cancellation
    """

    def __init__(self, completed: Optional[list[Any]] = None) -> None:
        self.completed = list(completed or [])
        super().__init__(
            f"Simulation cancelled after {len(self.completed)} completed runs"
        )
