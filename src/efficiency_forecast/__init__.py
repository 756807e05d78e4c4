"""Adaptive EWMA efficiency forecasting with Monte Carlo analysis."""

from efficiency_forecast.config import SimulationConfig, load_config
from efficiency_forecast.exceptions import (
    ConfigValidationError,
    EfficiencyForecastError,
    InvalidParameterError,
    SimulationCancelledError,
    ValidationError,
)

__version__ = "0.1.0"

__all__ = [
    "SimulationConfig",
    "load_config",
    "EfficiencyForecastError",
    "InvalidParameterError",
    "ValidationError",
    "ConfigValidationError",
    "SimulationCancelledError",
]
