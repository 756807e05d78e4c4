"""Reporting and chart data for ensemble analysis."""

import csv
from dataclasses import dataclass, field
from datetime import datetime
import io
import json
from typing import Any, Dict, List, Optional

import pandas as pd

from efficiency_forecast.simulation.analysis.statistics import (
    EnsembleSummary,
    HistogramBin,
    LineSeries,
    StatsAggregator,
)
from efficiency_forecast.simulation.engine.ensemble import EnsembleResult


@dataclass
class ChartData:
    """Data for the four ensemble charts."""

    efficiency_histogram: List[HistogramBin] = field(default_factory=list)
    units_to_goal_histogram: List[HistogramBin] = field(default_factory=list)
    efficiency_line: Optional[LineSeries] = None
    units_to_goal_line: Optional[LineSeries] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "efficiency_histogram": [_bin_to_dict(b) for b in self.efficiency_histogram],
            "units_to_goal_histogram": [
                _bin_to_dict(b) for b in self.units_to_goal_histogram
            ],
            "efficiency_line": self.efficiency_line.to_dict() if self.efficiency_line else None,
            "units_to_goal_line": (
                self.units_to_goal_line.to_dict() if self.units_to_goal_line else None
            ),
        }


def _bin_to_dict(histogram_bin: HistogramBin) -> Dict[str, Any]:
    return {
        "label": histogram_bin.label,
        "lower_bound": histogram_bin.lower_bound,
        "upper_bound": histogram_bin.upper_bound,
        "count": histogram_bin.count,
    }


def format_naive_estimate(naive_perfect_units: Optional[int]) -> str:
    """Display value for the linear-model baseline ("∞" when infinite)."""
    if naive_perfect_units is None:
        return "∞"
    return str(max(0, naive_perfect_units))


class EnsembleReport:
    """Generate reports and visualization data from an ensemble result."""

    def __init__(self, ensemble_result: EnsembleResult):
        """Initialize report generator.

        Args:
            ensemble_result: EnsembleResult from EnsembleRunner.analyze
        """
        self.result = ensemble_result
        self.aggregator = StatsAggregator(ensemble_result.outcomes)
        self._summary: Optional[EnsembleSummary] = None

    @property
    def summary(self) -> EnsembleSummary:
        if self._summary is None:
            self._summary = self.aggregator.summary()
        return self._summary

    def get_stat_cards(self) -> List[Dict[str, str]]:
        """Get the headline statistics as label/value pairs.

        Returns:
            List of dicts with "label" and "value" keys
        """
        s = self.summary
        return [
            {"label": "Initial Efficiency", "value": f"{self.result.initial_efficiency:.2%}"},
            {"label": "Target Efficiency", "value": f"{self.result.target_efficiency:.2%}"},
            {"label": "Avg. Final Efficiency", "value": f"{s.mean_final_efficiency:.2%}"},
            {"label": "Max Final Efficiency", "value": f"{s.max_final_efficiency:.2%}"},
            {"label": "Avg. Units to Goal (EWMA)", "value": f"{s.mean_units_to_goal:.2f}"},
            {"label": "Max Units to Goal (EWMA)", "value": str(s.max_units_to_goal)},
            {
                "label": "Sims Reaching Goal",
                "value": f"{s.goal_reached_count} ({s.goal_reached_percent:.1f}%)",
            },
            {
                "label": "Actual Perfect Units (Simple Model)",
                "value": format_naive_estimate(self.result.naive_perfect_units),
            },
        ]

    def generate_summary_text(self) -> str:
        """Generate human-readable summary of the ensemble.

        Returns:
            Formatted summary text
        """
        lines = []
        lines.append("=" * 70)
        lines.append("EFFICIENCY ENSEMBLE REPORT")
        lines.append("=" * 70)
        lines.append("")
        lines.append(f"Simulations: {self.summary.n_runs}")
        if self.result.seed is not None:
            lines.append(f"Seed: {self.result.seed}")
        lines.append("")

        for card in self.get_stat_cards():
            lines.append(f"  {card['label'] + ':':<38}{card['value']}")

        if self.summary.unreachable_count:
            lines.append("")
            lines.append(
                f"  {self.summary.unreachable_count} run(s) cannot reach the target "
                "with perfect units alone"
            )

        lines.append("\n" + "=" * 70)
        return "\n".join(lines)

    def get_chart_data(self) -> ChartData:
        """Get data for the histograms and line charts.

        Returns:
            ChartData with both histograms and both line series
        """
        series = self.aggregator.line_series()
        return ChartData(
            efficiency_histogram=self.aggregator.efficiency_histogram(),
            units_to_goal_histogram=self.aggregator.units_to_goal_histogram(),
            efficiency_line=series["final_efficiency"],
            units_to_goal_line=series["units_to_goal"],
        )

    def to_dataframe(self) -> pd.DataFrame:
        """Create a DataFrame with one row per run."""
        return pd.DataFrame(
            [
                {
                    "simulation_id": outcome.run_id,
                    "final_efficiency": outcome.final_efficiency,
                    "units_to_goal": outcome.units_to_goal,
                    "goal_reached": outcome.goal_reached,
                }
                for outcome in self.result.outcomes
            ],
            columns=["simulation_id", "final_efficiency", "units_to_goal", "goal_reached"],
        )

    def export_csv(self) -> str:
        """Export per-run outcomes to CSV format.

        Returns:
            CSV string with a short header block followed by one row per run
        """
        output = io.StringIO()
        writer = csv.writer(output)

        writer.writerow(["Efficiency Ensemble Results"])
        writer.writerow([f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"])
        writer.writerow([f"Number of Simulations: {self.summary.n_runs}"])
        writer.writerow([])

        writer.writerow(["Simulation ID", "Final Efficiency", "Units to Goal", "Goal Reached"])
        for outcome in self.result.outcomes:
            writer.writerow([
                outcome.run_id,
                f"{outcome.final_efficiency:.6f}",
                "unreachable" if outcome.units_to_goal is None else outcome.units_to_goal,
                "yes" if outcome.goal_reached else "no",
            ])

        return output.getvalue()

    def export_json(self) -> str:
        """Export report as JSON string.

        Returns:
            JSON string with summary, stat cards, chart data and outcomes
        """
        data = {
            "n_runs": self.summary.n_runs,
            "seed": self.result.seed,
            "initial_efficiency": self.result.initial_efficiency,
            "target_efficiency": self.result.target_efficiency,
            "naive_perfect_units": self.result.naive_perfect_units,
            "summary": self.summary.to_dict(),
            "stat_cards": self.get_stat_cards(),
            "charts": self.get_chart_data().to_dict(),
            "outcomes": [
                {
                    "simulation_id": o.run_id,
                    "final_efficiency": o.final_efficiency,
                    "units_to_goal": o.units_to_goal,
                }
                for o in self.result.outcomes
            ],
        }
        return json.dumps(data, indent=2)
