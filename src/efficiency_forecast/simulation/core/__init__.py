"""Core tracker state and event sampling."""

from efficiency_forecast.simulation.core.events import (
    EventSampler,
    UniformCountStrategy,
    WeightedStrategy,
)
from efficiency_forecast.simulation.core.tracker import (
    EfficiencyTracker,
    TrackerState,
    UnitReport,
    forecast_units_to_goal,
    process_unit,
)

__all__ = [
    "EfficiencyTracker",
    "TrackerState",
    "UnitReport",
    "process_unit",
    "forecast_units_to_goal",
    "EventSampler",
    "WeightedStrategy",
    "UniformCountStrategy",
]
