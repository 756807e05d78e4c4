"""EWMA efficiency tracking and goal forecasting.

The tracker state is an immutable record threaded through pure update
functions; ``EfficiencyTracker`` wraps them for callers that prefer a
stateful object.
"""

from dataclasses import dataclass, replace
import math
from typing import Mapping, Optional, Sequence

from efficiency_forecast.exceptions import InvalidParameterError

SeverityProfile = Mapping[str, float]


@dataclass(frozen=True)
class TrackerState:
    """Snapshot of one tracker's EWMA state.

    Attributes:
        target_efficiency: Efficiency the forecast aims for (0.0-1.0)
        alpha: Smoothing factor in (0, 1]
        max_severity_per_unit: Severity at which a unit scores zero
        current_efficiency: Running EWMA estimate
        unit_count: Number of units processed so far
    """

    target_efficiency: float
    alpha: float
    max_severity_per_unit: float
    current_efficiency: float
    unit_count: int = 0

    def __post_init__(self) -> None:
        """Validate tracker parameters."""
        if self.alpha <= 0 or self.alpha > 1:
            raise InvalidParameterError(
                f"Smoothing factor (alpha) must be in (0, 1], got {self.alpha}"
            )
        if self.max_severity_per_unit <= 0:
            raise InvalidParameterError(
                "max_severity_per_unit must be positive, "
                f"got {self.max_severity_per_unit}"
            )
        if self.unit_count < 0:
            raise InvalidParameterError(
                f"unit_count must be non-negative, got {self.unit_count}"
            )


@dataclass(frozen=True)
class UnitReport:
    """Result of processing one unit.

    Attributes:
        unit_index: 1-based index of the unit
        events: Event labels in order of occurrence
        total_severity: Summed severity, clamped to the per-unit maximum
        unit_performance: Performance score for the unit (0.0-1.0)
        efficiency_after: EWMA efficiency after the update
        units_to_goal: Forecast after this unit (None if unreachable); only
            meaningful when ``forecasted`` is set
        forecasted: Whether a runner attached a forecast to the report
    """

    unit_index: int
    events: tuple[str, ...]
    total_severity: float
    unit_performance: float
    efficiency_after: float
    units_to_goal: Optional[int] = None
    forecasted: bool = False

    @property
    def is_unreachable(self) -> bool:
        """Whether a forecast was attached and found the goal unreachable."""
        return self.forecasted and self.units_to_goal is None

    @property
    def is_perfect(self) -> bool:
        """Whether no events occurred during the unit."""
        return len(self.events) == 0


def unit_performance(
    events: Sequence[str],
    severity_profile: SeverityProfile,
    max_severity_per_unit: float,
) -> tuple[float, float]:
    """Score a unit from its events.

    Unknown labels contribute no severity.

    Args:
        events: Event labels that occurred during the unit
        severity_profile: Mapping of event label to severity
        max_severity_per_unit: Severity at which the unit scores zero

    Returns:
        Tuple of (clamped total severity, performance score)
    """
    raw_severity = sum(severity_profile.get(event, 0) for event in events)
    total_severity = min(raw_severity, max_severity_per_unit)
    return total_severity, 1 - total_severity / max_severity_per_unit


def process_unit(
    state: TrackerState,
    events: Sequence[str],
    severity_profile: SeverityProfile,
) -> tuple[TrackerState, UnitReport]:
    """Apply one unit's events to the EWMA.

    Args:
        state: Tracker state before the unit
        events: Event labels that occurred during the unit
        severity_profile: Mapping of event label to severity

    Returns:
        Tuple of (new state, report for the unit)
    """
    total_severity, performance = unit_performance(
        events, severity_profile, state.max_severity_per_unit
    )
    unit_index = state.unit_count + 1
    efficiency = state.alpha * performance + (1 - state.alpha) * state.current_efficiency

    new_state = replace(state, current_efficiency=efficiency, unit_count=unit_index)
    report = UnitReport(
        unit_index=unit_index,
        events=tuple(events),
        total_severity=total_severity,
        unit_performance=performance,
        efficiency_after=efficiency,
    )
    return new_state, report


def _perfect_unit_step(efficiency: float, alpha: float) -> float:
    # Same arithmetic as process_unit with a performance of 1.0
    return alpha * 1.0 + (1 - alpha) * efficiency


def efficiency_after_perfect_units(state: TrackerState, n_units: int) -> float:
    """Efficiency after ``n_units`` consecutive perfect units, as process_unit computes it."""
    efficiency = state.current_efficiency
    for _ in range(n_units):
        efficiency = _perfect_unit_step(efficiency, state.alpha)
    return efficiency


def forecast_units_to_goal(state: TrackerState) -> Optional[int]:
    """Forecast consecutive perfect units needed to reach the target.

    Args:
        state: Current tracker state

    Returns:
        0 if the target is already met, the number of perfect units needed
        otherwise, or None when the target cannot be reached (target or
        current efficiency at 1.0, or alpha == 1)
    """
    current = state.current_efficiency
    target = state.target_efficiency

    if current >= target:
        return 0
    if current >= 1 or target >= 1 or state.alpha >= 1:
        return None

    numerator = math.log((1 - target) / (1 - current))
    denominator = math.log(1 - state.alpha)
    if denominator == 0:
        # alpha too small to move the EWMA in floating point
        return None
    n_units = max(1, math.ceil(numerator / denominator))

    # The log estimate can be off by one against the iterated update
    before = efficiency_after_perfect_units(state, n_units - 1)
    while n_units > 1 and before >= target:
        n_units -= 1
        before = efficiency_after_perfect_units(state, n_units - 1)

    after = _perfect_unit_step(before, state.alpha)
    while after < target:
        if after <= before:
            # Update no longer moves the value in floating point
            return None
        n_units += 1
        before, after = after, _perfect_unit_step(after, state.alpha)

    return n_units


class EfficiencyTracker:
    """Stateful EWMA efficiency tracker for a single run.

    Each call to ``process_unit`` folds one unit's performance into the
    running efficiency. The tracker is owned by one run and never shared.
    """

    def __init__(
        self,
        target_efficiency: float = 0.995,
        alpha: float = 0.1,
        initial_efficiency: float = 1.0,
        max_severity_per_unit: float = 100,
    ) -> None:
        """Initialize tracker.

        Args:
            target_efficiency: Efficiency goal (0.0-1.0)
            alpha: Smoothing factor in (0, 1]
            initial_efficiency: Starting EWMA value
            max_severity_per_unit: Severity at which a unit scores zero

        Raises:
            InvalidParameterError: If alpha or max_severity_per_unit is out of range
        """
        self._state = TrackerState(
            target_efficiency=target_efficiency,
            alpha=alpha,
            max_severity_per_unit=max_severity_per_unit,
            current_efficiency=initial_efficiency,
        )

    @classmethod
    def from_state(cls, state: TrackerState) -> "EfficiencyTracker":
        """Create a tracker that continues from an existing state."""
        tracker = cls.__new__(cls)
        tracker._state = state
        return tracker

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def target_efficiency(self) -> float:
        return self._state.target_efficiency

    @property
    def alpha(self) -> float:
        return self._state.alpha

    @property
    def max_severity_per_unit(self) -> float:
        return self._state.max_severity_per_unit

    @property
    def current_efficiency(self) -> float:
        return self._state.current_efficiency

    @property
    def unit_count(self) -> int:
        return self._state.unit_count

    def process_unit(
        self, events: Sequence[str], severity_profile: SeverityProfile
    ) -> UnitReport:
        """Process one unit's events and update the running efficiency.

        Args:
            events: Event labels that occurred during the unit
            severity_profile: Mapping of event label to severity

        Returns:
            UnitReport for the processed unit
        """
        self._state, report = process_unit(self._state, events, severity_profile)
        return report

    def forecast_units_to_goal(self) -> Optional[int]:
        """Forecast perfect units needed to reach the target (None if unreachable)."""
        return forecast_units_to_goal(self._state)

    def __repr__(self) -> str:
        return (
            f"EfficiencyTracker(current={self.current_efficiency:.4f}, "
            f"target={self.target_efficiency:.4f}, alpha={self.alpha}, "
            f"units={self.unit_count})"
        )
