"""Summary statistics, histogram binning and smoothing for ensemble outcomes."""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Sequence

import numpy as np

from efficiency_forecast.simulation.engine.simulator import RunOutcome

# Ensembles larger than this are smoothed for line charts
SMOOTHING_THRESHOLD = 100
MIN_SMOOTHING_WINDOW = 10

EFFICIENCY_BINS = 20
UNITS_TO_GOAL_BINS = 15


@dataclass
class EnsembleSummary:
    """Summary statistics over ensemble outcomes.

    Units-to-goal statistics cover reachable runs only and fall back to 0
    when no run is reachable.

    Attributes:
        n_runs: Number of runs summarized
        mean_final_efficiency: Average final efficiency (0.0-1.0)
        max_final_efficiency: Highest final efficiency (0.0-1.0)
        mean_units_to_goal: Average forecast over reachable runs
        max_units_to_goal: Largest forecast over reachable runs
        goal_reached_count: Runs whose forecast is 0
        goal_reached_percent: Share of runs whose forecast is 0 (0-100)
        unreachable_count: Runs whose goal is unreachable
    """

    n_runs: int = 0
    mean_final_efficiency: float = 0.0
    max_final_efficiency: float = 0.0
    mean_units_to_goal: float = 0.0
    max_units_to_goal: int = 0
    goal_reached_count: int = 0
    goal_reached_percent: float = 0.0
    unreachable_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HistogramBin:
    """One bar of a histogram.

    Attributes:
        lower_bound: Inclusive lower edge
        upper_bound: Upper edge (inclusive for the last bin)
        label: Display label
        count: Values falling into the bin
    """

    lower_bound: float
    upper_bound: float
    label: str
    count: int


@dataclass
class LineSeries:
    """Chart-ready line series over ensemble runs.

    ``None`` entries in ``values`` are gaps that should not be connected.
    When smoothed, each point is a trailing window of ``window`` runs and is
    labelled with the runs it averages (``"Run 1-10"``, ``"Run 2-11"``, ...),
    not with consecutive non-overlapping blocks.

    Attributes:
        name: Series name
        labels: X-axis labels
        values: Y values, with None marking gaps
        smoothed: Whether a moving average was applied
        window: Moving-average window (1 when raw)
    """

    name: str
    labels: list[str] = field(default_factory=list)
    values: list[Optional[float]] = field(default_factory=list)
    smoothed: bool = False
    window: int = 1

    @property
    def has_gaps(self) -> bool:
        return any(value is None for value in self.values)

    @property
    def title(self) -> str:
        if self.smoothed:
            return f"{self.name} (Moving Avg, Window={self.window})"
        return self.name

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "labels": self.labels,
            "values": self.values,
            "smoothed": self.smoothed,
            "window": self.window,
        }


def summarize(outcomes: Sequence[RunOutcome]) -> EnsembleSummary:
    """Compute summary statistics for ensemble outcomes.

    Args:
        outcomes: Ensemble outcomes

    Returns:
        EnsembleSummary (all zeros for an empty ensemble)
    """
    n_runs = len(outcomes)
    if n_runs == 0:
        return EnsembleSummary()

    efficiencies = np.array([o.final_efficiency for o in outcomes], dtype=float)
    finite = np.array(
        [o.units_to_goal for o in outcomes if o.units_to_goal is not None], dtype=float
    )
    goal_reached = sum(1 for o in outcomes if o.units_to_goal == 0)

    return EnsembleSummary(
        n_runs=n_runs,
        mean_final_efficiency=float(efficiencies.mean()),
        max_final_efficiency=float(efficiencies.max()),
        mean_units_to_goal=float(finite.mean()) if finite.size else 0.0,
        max_units_to_goal=int(finite.max()) if finite.size else 0,
        goal_reached_count=goal_reached,
        goal_reached_percent=goal_reached / n_runs * 100,
        unreachable_count=n_runs - int(finite.size),
    )


def bin_values(values: Sequence[float], num_bins: int) -> list[HistogramBin]:
    """Partition values into equal-width bins over their observed range.

    The maximum value always lands in the last bin. When every value is the
    same a single bin labelled with that value is returned.

    Args:
        values: Values to bin
        num_bins: Number of bins

    Returns:
        List of HistogramBin (empty for empty input)
    """
    if num_bins < 1:
        raise ValueError(f"num_bins must be >= 1, got {num_bins}")
    if len(values) == 0:
        return []

    data = np.asarray(values, dtype=float)
    low = float(data.min())
    high = float(data.max())

    if low == high:
        return [HistogramBin(low, high, f"{low:.1f}", int(data.size))]

    width = (high - low) / num_bins
    indices = np.floor((data - low) / width).astype(int)
    indices = np.clip(indices, 0, num_bins - 1)
    counts = np.bincount(indices, minlength=num_bins)

    bins = []
    for i in range(num_bins):
        lower = low + i * width
        upper = high if i == num_bins - 1 else low + (i + 1) * width
        bins.append(HistogramBin(lower, upper, f"{lower:.1f}-{upper:.1f}", int(counts[i])))
    return bins


def moving_average(values: Sequence[float], window: int) -> list[float]:
    """Trailing simple moving average.

    Args:
        values: Input series
        window: Window size

    Returns:
        ``len(values) - window + 1`` averages, or the input unchanged when
        ``window <= 1`` or ``window > len(values)``
    """
    if window <= 1 or len(values) < window:
        return list(values)

    data = np.asarray(values, dtype=float)
    kernel = np.ones(window) / window
    return np.convolve(data, kernel, mode="valid").tolist()


def forward_fill(values: Sequence[Optional[float]], initial: float = 0.0) -> list[float]:
    """Replace gaps with the last known value (``initial`` before the first)."""
    filled = []
    last = initial
    for value in values:
        if value is not None:
            last = value
        filled.append(last)
    return filled


def smoothing_window(n_runs: int) -> int:
    """Moving-average window for an ensemble of ``n_runs`` (1 means unsmoothed)."""
    if n_runs <= SMOOTHING_THRESHOLD:
        return 1
    return max(MIN_SMOOTHING_WINDOW, n_runs // 20)


def build_line_series(outcomes: Sequence[RunOutcome]) -> dict[str, LineSeries]:
    """Build the final-efficiency and units-to-goal line series.

    Large ensembles are smoothed; unreachable runs are forward-filled first
    so the average never spans missing data. Small ensembles keep raw values
    and leave unreachable runs as explicit gaps.

    Args:
        outcomes: Ensemble outcomes ordered by run_id

    Returns:
        Dict with "final_efficiency" (percent) and "units_to_goal" series
    """
    window = smoothing_window(len(outcomes))
    efficiency = [o.final_efficiency * 100 for o in outcomes]
    units = [
        float(o.units_to_goal) if o.units_to_goal is not None else None for o in outcomes
    ]

    if window > 1:
        efficiency_values = moving_average(efficiency, window)
        units_values: list[Optional[float]] = moving_average(forward_fill(units), window)
        labels = [f"Run {i + 1}-{i + window}" for i in range(len(efficiency_values))]
    else:
        efficiency_values = efficiency
        units_values = units
        labels = [str(o.run_id + 1) for o in outcomes]

    smoothed = window > 1
    return {
        "final_efficiency": LineSeries(
            name="Final Efficiency Over Simulations",
            labels=labels,
            values=list(efficiency_values),
            smoothed=smoothed,
            window=window,
        ),
        "units_to_goal": LineSeries(
            name="Units to Goal Over Simulations",
            labels=labels,
            values=list(units_values),
            smoothed=smoothed,
            window=window,
        ),
    }


def efficiency_histogram(
    outcomes: Sequence[RunOutcome], num_bins: int = EFFICIENCY_BINS
) -> list[HistogramBin]:
    """Histogram of final efficiency in percent."""
    return bin_values([o.final_efficiency * 100 for o in outcomes], num_bins)


def units_to_goal_histogram(
    outcomes: Sequence[RunOutcome], num_bins: int = UNITS_TO_GOAL_BINS
) -> list[HistogramBin]:
    """Histogram of units-to-goal over reachable runs that have not met the goal."""
    values = [
        o.units_to_goal for o in outcomes if o.units_to_goal is not None and o.units_to_goal > 0
    ]
    return bin_values(values, num_bins)


class StatsAggregator:
    """Reduce ensemble outcomes into summaries and chart-ready series."""

    def __init__(self, outcomes: Sequence[RunOutcome]) -> None:
        self.outcomes = list(outcomes)

    def summary(self) -> EnsembleSummary:
        return summarize(self.outcomes)

    def efficiency_histogram(self, num_bins: int = EFFICIENCY_BINS) -> list[HistogramBin]:
        return efficiency_histogram(self.outcomes, num_bins)

    def units_to_goal_histogram(
        self, num_bins: int = UNITS_TO_GOAL_BINS
    ) -> list[HistogramBin]:
        return units_to_goal_histogram(self.outcomes, num_bins)

    def line_series(self) -> dict[str, LineSeries]:
        return build_line_series(self.outcomes)
