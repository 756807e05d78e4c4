"""Single-run and ensemble simulation engines."""

from efficiency_forecast.simulation.engine.ensemble import (
    EnsembleResult,
    EnsembleRunner,
    naive_perfect_units_needed,
)
from efficiency_forecast.simulation.engine.simulator import (
    RunOutcome,
    SimulationRunner,
    SimulationTrace,
)

__all__ = [
    "SimulationRunner",
    "SimulationTrace",
    "RunOutcome",
    "EnsembleRunner",
    "EnsembleResult",
    "naive_perfect_units_needed",
]
