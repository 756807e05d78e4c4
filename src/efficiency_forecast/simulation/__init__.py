"""Efficiency simulation and Monte Carlo analysis engine.

Main Components:
- Core: EWMA tracker state and event sampling strategies
- Engine: Single-run simulator and Monte Carlo ensemble runner
- Analysis: Summary statistics, histograms, smoothing and reports
"""

from efficiency_forecast.simulation.core.events import (
    EventSampler,
    UniformCountStrategy,
    WeightedStrategy,
)
from efficiency_forecast.simulation.core.tracker import (
    EfficiencyTracker,
    TrackerState,
    UnitReport,
)
from efficiency_forecast.simulation.engine.simulator import (
    RunOutcome,
    SimulationRunner,
    SimulationTrace,
)
from efficiency_forecast.simulation.engine.ensemble import (
    EnsembleResult,
    EnsembleRunner,
    naive_perfect_units_needed,
)
from efficiency_forecast.simulation.analysis.statistics import (
    EnsembleSummary,
    HistogramBin,
    LineSeries,
    StatsAggregator,
)
from efficiency_forecast.simulation.analysis.report import ChartData, EnsembleReport

__all__ = [
    # Core
    "EfficiencyTracker",
    "TrackerState",
    "UnitReport",
    "EventSampler",
    "WeightedStrategy",
    "UniformCountStrategy",
    # Engine
    "SimulationRunner",
    "SimulationTrace",
    "RunOutcome",
    "EnsembleRunner",
    "EnsembleResult",
    "naive_perfect_units_needed",
    # Analysis
    "StatsAggregator",
    "EnsembleSummary",
    "HistogramBin",
    "LineSeries",
    "EnsembleReport",
    "ChartData",
]
