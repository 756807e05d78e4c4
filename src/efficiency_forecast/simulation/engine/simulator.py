"""Single-run efficiency simulator."""

from dataclasses import dataclass, field, replace
from typing import Iterator, Optional

import numpy as np
import pandas as pd
import structlog

from efficiency_forecast.config import SimulationConfig
from efficiency_forecast.simulation.core.events import (
    EventSampler,
    WeightedStrategy,
    create_rng,
)
from efficiency_forecast.simulation.core.tracker import (
    EfficiencyTracker,
    UnitReport,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RunOutcome:
    """Final outcome of one simulation run.

    Attributes:
        run_id: Identifier of the run within its ensemble
        final_efficiency: EWMA efficiency after the last unit
        units_to_goal: Forecast after the last unit (None if unreachable)
    """

    run_id: int
    final_efficiency: float
    units_to_goal: Optional[int]

    @property
    def goal_reached(self) -> bool:
        return self.units_to_goal == 0

    @property
    def is_reachable(self) -> bool:
        return self.units_to_goal is not None


@dataclass
class SimulationTrace:
    """Full per-unit trace of a single simulation run.

    Attributes:
        trace: One UnitReport per simulated unit
        outcome: Final efficiency and forecast
        initial_efficiency: Starting efficiency derived from history
        target_efficiency: Efficiency goal
        alpha: Smoothing factor used
        perfect_units: Units with no events
        total_events: Events across all units
        goal_unit: First unit (1-based) whose forecast reported 0, if any
    """

    trace: list[UnitReport] = field(default_factory=list)
    outcome: Optional[RunOutcome] = None
    initial_efficiency: float = 0.0
    target_efficiency: float = 0.0
    alpha: float = 0.0
    perfect_units: int = 0
    total_events: int = 0
    goal_unit: Optional[int] = None

    def add_unit(self, report: UnitReport) -> None:
        """Append a streamed unit and update the derived statistics."""
        self.trace.append(report)
        if report.is_perfect:
            self.perfect_units += 1
        self.total_events += len(report.events)
        if report.units_to_goal == 0 and self.goal_unit is None:
            self.goal_unit = report.unit_index

    def finalize(self, tracker: EfficiencyTracker, run_id: int = 0) -> RunOutcome:
        """Record the final outcome from the tracker that produced the trace."""
        self.outcome = RunOutcome(
            run_id=run_id,
            final_efficiency=tracker.current_efficiency,
            units_to_goal=tracker.forecast_units_to_goal(),
        )
        return self.outcome

    @property
    def goal_achieved(self) -> bool:
        return self.goal_unit is not None

    @property
    def final_efficiency(self) -> float:
        if self.outcome is None:
            return self.initial_efficiency
        return self.outcome.final_efficiency

    def to_dataframe(self) -> pd.DataFrame:
        """Create a DataFrame with one row per unit."""
        return pd.DataFrame(
            [
                {
                    "unit": report.unit_index,
                    "events": ", ".join(report.events),
                    "event_count": len(report.events),
                    "total_severity": report.total_severity,
                    "unit_performance": report.unit_performance,
                    "efficiency": report.efficiency_after,
                    "units_to_goal": report.units_to_goal,
                }
                for report in self.trace
            ]
        )

    def to_dict(self) -> dict:
        """Convert trace to a JSON-compatible dict."""
        return {
            "initial_efficiency": self.initial_efficiency,
            "target_efficiency": self.target_efficiency,
            "alpha": self.alpha,
            "final_efficiency": self.final_efficiency,
            "perfect_units": self.perfect_units,
            "total_events": self.total_events,
            "goal_achieved": self.goal_achieved,
            "goal_unit": self.goal_unit,
            "units": [
                {
                    "unit": report.unit_index,
                    "events": list(report.events),
                    "total_severity": report.total_severity,
                    "unit_performance": report.unit_performance,
                    "efficiency": report.efficiency_after,
                    "units_to_goal": report.units_to_goal,
                }
                for report in self.trace
            ],
        }


def describe_forecast(units_to_goal: Optional[int], target_efficiency: float) -> str:
    """Human-readable forecast line for one unit.

    Args:
        units_to_goal: Forecast value (None if unreachable)
        target_efficiency: Efficiency goal (0.0-1.0)

    Returns:
        Narrative text
    """
    target_pct = f"{target_efficiency * 100:.2f}%"
    if units_to_goal == 0:
        return f"GOAL ACHIEVED! Target of {target_pct} reached or exceeded!"
    if units_to_goal is None:
        return f"Goal of {target_pct} is unreachable with perfect units alone"
    return f"Need {units_to_goal} perfect units to reach {target_pct} goal (EWMA)"


class SimulationRunner:
    """Drive one EfficiencyTracker through a sequence of simulated units."""

    def __init__(self, config: SimulationConfig) -> None:
        """Initialize runner.

        Args:
            config: Validated scenario configuration
        """
        self.config = config

    def create_tracker(self) -> EfficiencyTracker:
        """Create a fresh tracker from the configuration."""
        return EfficiencyTracker(
            target_efficiency=self.config.target_efficiency,
            alpha=self.config.alpha,
            initial_efficiency=self.config.initial_efficiency,
            max_severity_per_unit=self.config.max_severity_per_unit,
        )

    def new_trace(self) -> SimulationTrace:
        """Create an empty trace for this configuration."""
        return SimulationTrace(
            initial_efficiency=self.config.initial_efficiency,
            target_efficiency=self.config.target_efficiency,
            alpha=self.config.alpha,
        )

    def default_strategy(self) -> WeightedStrategy:
        """Weighted event strategy used for detailed single runs."""
        return WeightedStrategy(
            self.config.severity_profile,
            perfect_unit_probability=self.config.perfect_unit_probability,
            second_event_probability=self.config.second_event_probability,
        )

    def iter_units(
        self,
        strategy: Optional[EventSampler] = None,
        rng: Optional[np.random.Generator] = None,
        tracker: Optional[EfficiencyTracker] = None,
    ) -> Iterator[UnitReport]:
        """Lazily simulate units one at a time.

        The returned generator yields exactly ``num_units`` reports, each with
        ``units_to_goal`` filled in and ``forecasted`` set, and cannot be
        restarted.

        Args:
            strategy: Event sampler (defaults to the weighted strategy)
            rng: Random source for this run (defaults to a fresh unseeded one)
            tracker: Tracker to drive (defaults to a fresh one)

        Yields:
            UnitReport for each simulated unit
        """
        strategy = strategy or self.default_strategy()
        rng = rng if rng is not None else create_rng()
        tracker = tracker or self.create_tracker()

        for _ in range(self.config.num_units):
            events = strategy.sample(rng)
            report = tracker.process_unit(events, self.config.severity_profile)
            forecast = tracker.forecast_units_to_goal()

            logger.debug(
                "unit_processed",
                unit=report.unit_index,
                events=list(report.events),
                efficiency=report.efficiency_after,
                units_to_goal=forecast,
            )
            yield replace(report, units_to_goal=forecast, forecasted=True)

    def run(
        self,
        strategy: Optional[EventSampler] = None,
        rng: Optional[np.random.Generator] = None,
        run_id: int = 0,
    ) -> SimulationTrace:
        """Simulate a full run and collect its trace.

        The run always covers ``num_units`` units; reaching the goal does not
        stop it early.

        Args:
            strategy: Event sampler (defaults to the weighted strategy)
            rng: Random source for this run
            run_id: ID for this run

        Returns:
            SimulationTrace with per-unit reports and derived statistics
        """
        logger.info(
            "simulation_started",
            run_id=run_id,
            num_units=self.config.num_units,
            initial_efficiency=self.config.initial_efficiency,
            target_efficiency=self.config.target_efficiency,
        )

        tracker = self.create_tracker()
        result = self.new_trace()

        for report in self.iter_units(strategy, rng, tracker):
            result.add_unit(report)

        result.finalize(tracker, run_id)

        logger.info(
            "simulation_complete",
            run_id=run_id,
            final_efficiency=result.final_efficiency,
            goal_unit=result.goal_unit,
        )
        return result
