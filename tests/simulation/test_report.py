"""Tests for ensemble reports."""

import json

import pandas as pd
import pytest

from efficiency_forecast.simulation.analysis.report import (
    ChartData,
    EnsembleReport,
    format_naive_estimate,
)
from efficiency_forecast.simulation.engine.ensemble import EnsembleResult, EnsembleRunner
from efficiency_forecast.simulation.engine.simulator import RunOutcome


@pytest.fixture
def ensemble_result():
    """Small hand-built ensemble result."""
    return EnsembleResult(
        outcomes=[
            RunOutcome(run_id=0, final_efficiency=0.86, units_to_goal=0),
            RunOutcome(run_id=1, final_efficiency=0.70, units_to_goal=12),
            RunOutcome(run_id=2, final_efficiency=0.60, units_to_goal=None),
            RunOutcome(run_id=3, final_efficiency=0.75, units_to_goal=6),
        ],
        initial_efficiency=0.65,
        target_efficiency=0.85,
        naive_perfect_units=160,
        seed=42,
    )


@pytest.fixture
def report(ensemble_result):
    return EnsembleReport(ensemble_result)


class TestFormatNaiveEstimate:
    """Test display of the linear-model baseline."""

    def test_infinite(self):
        assert format_naive_estimate(None) == "∞"

    def test_negative_clamped(self):
        assert format_naive_estimate(-12) == "0"

    def test_positive(self):
        assert format_naive_estimate(160) == "160"


class TestEnsembleReport:
    """Test EnsembleReport."""

    def test_stat_cards(self, report):
        """Test headline statistics."""
        cards = {card["label"]: card["value"] for card in report.get_stat_cards()}

        assert cards["Initial Efficiency"] == "65.00%"
        assert cards["Target Efficiency"] == "85.00%"
        assert cards["Max Final Efficiency"] == "86.00%"
        assert cards["Avg. Units to Goal (EWMA)"] == "6.00"
        assert cards["Max Units to Goal (EWMA)"] == "12"
        assert cards["Sims Reaching Goal"] == "1 (25.0%)"
        assert cards["Actual Perfect Units (Simple Model)"] == "160"

    def test_summary_is_cached(self, report):
        assert report.summary is report.summary

    def test_summary_text(self, report):
        """Test the text report."""
        text = report.generate_summary_text()
        assert "EFFICIENCY ENSEMBLE REPORT" in text
        assert "Simulations: 4" in text
        assert "Seed: 42" in text
        assert "1 run(s) cannot reach the target" in text

    def test_chart_data(self, report):
        """Test all four charts are produced."""
        charts = report.get_chart_data()

        assert isinstance(charts, ChartData)
        assert sum(b.count for b in charts.efficiency_histogram) == 4
        assert sum(b.count for b in charts.units_to_goal_histogram) == 2
        assert charts.units_to_goal_line.values == [0.0, 12.0, None, 6.0]
        assert not charts.efficiency_line.smoothed

        data = charts.to_dict()
        assert data["efficiency_histogram"][0]["label"]
        assert data["units_to_goal_line"]["values"][2] is None

    def test_to_dataframe(self, report):
        df = report.to_dataframe()
        assert isinstance(df, pd.DataFrame)
        assert len(df) == 4
        assert list(df.columns) == [
            "simulation_id", "final_efficiency", "units_to_goal", "goal_reached",
        ]
        assert df["goal_reached"].sum() == 1

    def test_export_csv(self, report):
        """Test CSV export has a header block and one row per run."""
        csv_text = report.export_csv()
        lines = csv_text.strip().splitlines()

        assert lines[0] == "Efficiency Ensemble Results"
        assert "Number of Simulations: 4" in csv_text
        assert "Simulation ID,Final Efficiency,Units to Goal,Goal Reached" in lines
        assert lines[-2] == "2,0.600000,unreachable,no"
        assert lines[-4] == "0,0.860000,0,yes"

    def test_export_json(self, report):
        """Test JSON export round-trips through the json module."""
        data = json.loads(report.export_json())

        assert data["n_runs"] == 4
        assert data["seed"] == 42
        assert data["naive_perfect_units"] == 160
        assert data["summary"]["unreachable_count"] == 1
        assert data["outcomes"][2]["units_to_goal"] is None
        assert len(data["stat_cards"]) == 8


def test_report_from_real_ensemble(config):
    """Test a report can be built from a seeded ensemble."""
    result = EnsembleRunner(config, seed=9).analyze()
    report = EnsembleReport(result)

    assert report.summary.n_runs == 100
    charts = report.get_chart_data()
    assert len(charts.efficiency_histogram) in (1, 20)
    assert len(charts.efficiency_line.values) == 100
