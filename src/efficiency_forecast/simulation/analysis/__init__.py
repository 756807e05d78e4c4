"""Ensemble statistics and reporting."""

from efficiency_forecast.simulation.analysis.report import ChartData, EnsembleReport
from efficiency_forecast.simulation.analysis.statistics import (
    EnsembleSummary,
    HistogramBin,
    LineSeries,
    StatsAggregator,
    bin_values,
    build_line_series,
    moving_average,
    summarize,
)

__all__ = [
    "StatsAggregator",
    "EnsembleSummary",
    "HistogramBin",
    "LineSeries",
    "summarize",
    "bin_values",
    "moving_average",
    "build_line_series",
    "EnsembleReport",
    "ChartData",
]
