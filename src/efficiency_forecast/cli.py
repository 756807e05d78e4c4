"""Command line interface with Click and Rich.

This module provides:
- Single-run simulation with a per-unit narrative
- Monte Carlo ensemble analysis with summary tables and histograms
- Closed-form forecasting for a given efficiency
- Configuration file scaffolding
"""

import json
from pathlib import Path
import sys
import time
from typing import Any, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from efficiency_forecast import __version__, logging_config
from efficiency_forecast.config import SimulationConfig, read_config_data, save_config
from efficiency_forecast.exceptions import (
    InvalidParameterError,
    SimulationCancelledError,
    ValidationError,
)
from efficiency_forecast.simulation.analysis.report import EnsembleReport
from efficiency_forecast.simulation.analysis.statistics import HistogramBin
from efficiency_forecast.simulation.core.events import create_rng
from efficiency_forecast.simulation.core.tracker import EfficiencyTracker
from efficiency_forecast.simulation.engine.ensemble import EnsembleRunner
from efficiency_forecast.simulation.engine.simulator import (
    SimulationRunner,
    describe_forecast,
)

# Initialize Rich console
console = Console()

logger = logging_config.get_logger(__name__)


def _parse_events(
    ctx: click.Context, param: click.Parameter, values: tuple[str, ...]
) -> dict[str, float]:
    """Parse repeated ``NAME=SEVERITY`` options into a severity profile."""
    profile: dict[str, float] = {}
    for value in values:
        name, sep, severity = value.rpartition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected NAME=SEVERITY, got {value!r}")
        try:
            profile[name.strip()] = float(severity)
        except ValueError:
            raise click.BadParameter(f"severity must be a number, got {severity!r}")
    return profile


def scenario_options(func):
    """Options shared by the simulate and ensemble commands."""
    options = [
        click.option(
            "--config",
            "config_path",
            type=click.Path(exists=True, dir_okay=False, path_type=Path),
            help="JSON scenario file",
        ),
        click.option(
            "--event",
            "-e",
            "events",
            multiple=True,
            callback=_parse_events,
            help="Event type as NAME=SEVERITY (repeatable)",
        ),
        click.option("--bad-events", type=float, help="Historical bad event count"),
        click.option("--duration", type=float, help="Historical duration"),
        click.option("--units", "num_units", type=int, help="Units to simulate (1-365)"),
        click.option("--max-severity", "max_severity_per_unit", type=float, help="Max severity per unit"),
        click.option(
            "--target-increment",
            "target_efficiency_increment",
            type=float,
            help="Target improvement in percentage points",
        ),
        click.option("--alpha", type=float, help="EWMA smoothing factor (0.01-1)"),
        click.option("--seed", type=int, default=None, help="Random seed for reproducibility"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_config(
    config_path: Optional[Path], events: dict[str, float], **overrides: Any
) -> SimulationConfig:
    """Merge a config file, --event options and explicit overrides, then validate once."""
    data: dict[str, Any] = {}
    if config_path is not None:
        data = read_config_data(config_path)
    if events:
        data["severity_profile"] = events
    data.update({k: v for k, v in overrides.items() if v is not None})
    return SimulationConfig.from_dict(data)


def _fail_validation(error: Exception) -> None:
    """Report a validation failure once and exit with a usage error code."""
    console.print(f"[red]Invalid parameters:[/red] {escape(str(error))}", soft_wrap=True)
    sys.exit(2)


@click.group()
@click.version_option(version=__version__, prog_name="efficiency-forecast")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Efficiency Forecast - EWMA efficiency tracking and Monte Carlo analysis.

    Simulate how discrete events erode a running efficiency score and how
    many perfect units are needed to reach a target.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    logging_config.configure_logging(
        log_level="DEBUG" if verbose else "WARNING",
        log_format="console",
        enable_colors=True,
    )


# ============================================================================
# SINGLE RUN
# ============================================================================


@cli.command()
@scenario_options
@click.option(
    "--perfect-prob",
    "perfect_unit_probability",
    type=float,
    help="Chance of an event-free unit (0-100)",
)
@click.option(
    "--second-prob",
    "second_event_probability",
    type=float,
    help="Chance of a second event in a unit (0-100)",
)
@click.option("--delay", type=float, default=0.0, help="Seconds to pause between units")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
def simulate(
    config_path: Optional[Path],
    events: dict[str, float],
    seed: Optional[int],
    delay: float,
    output_format: str,
    **overrides: Any,
) -> None:
    """Run one detailed simulation and show every unit.

    \b
    Examples:
        efficiency-forecast simulate -e outage=5 -e bug=2 --bad-events 42 --duration 120
        efficiency-forecast simulate --config scenario.json --format json
    """
    try:
        config = _build_config(config_path, events, **overrides)
    except ValidationError as e:
        _fail_validation(e)
        return

    runner = SimulationRunner(config)
    tracker = runner.create_tracker()
    result = runner.new_trace()
    units = runner.iter_units(rng=create_rng(seed), tracker=tracker)

    if output_format == "json":
        for report in units:
            result.add_unit(report)
        result.finalize(tracker)
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    console.print(
        Panel(
            f"Event Types: {', '.join(config.event_pool)}\n"
            f"Initial Efficiency: {config.initial_efficiency:.2%}\n"
            f"Target Efficiency: {config.target_efficiency:.2%}\n"
            f"Smoothing Factor (α): {config.alpha}",
            title="SIMULATION STARTING",
            border_style="blue",
        )
    )

    for report in units:
        result.add_unit(report)
        events_display = ", ".join(report.events) if report.events else "None (Perfect Unit!)"
        console.print(f"[bold]Unit {report.unit_index}[/bold]")
        console.print(f"  Events: {events_display}")
        console.print(f"  Unit Performance: {report.unit_performance:.2%}")
        console.print(f"  Current Efficiency: {report.efficiency_after:.4%}")
        style = "green" if report.units_to_goal == 0 else "white"
        console.print(
            f"  Forecast: [{style}]"
            f"{describe_forecast(report.units_to_goal, config.target_efficiency)}[/{style}]"
        )
        if delay > 0:
            time.sleep(delay)

    result.finalize(tracker)

    table = Table(title="Simulation Complete", show_header=True)
    table.add_column("Final Efficiency", style="cyan")
    table.add_column("Perfect Units", style="green")
    table.add_column("Total Events", style="yellow")
    table.add_column("Goal Achieved", style="magenta")
    table.add_row(
        f"{result.final_efficiency:.2%}",
        str(result.perfect_units),
        str(result.total_events),
        f"YES (unit {result.goal_unit})" if result.goal_achieved else "NO",
    )
    console.print(table)


# ============================================================================
# ENSEMBLE
# ============================================================================


def _histogram_table(title: str, bins: list[HistogramBin]) -> Table:
    """Render histogram bins as a table with text bars."""
    table = Table(title=title, show_header=True)
    table.add_column("Bin", style="cyan")
    table.add_column("Count", style="magenta", justify="right")
    table.add_column("", style="blue")

    peak = max((b.count for b in bins), default=0)
    for histogram_bin in bins:
        width = round(30 * histogram_bin.count / peak) if peak else 0
        table.add_row(histogram_bin.label, str(histogram_bin.count), "█" * width)
    return table


@cli.command()
@scenario_options
@click.option("--runs", "num_runs", type=int, help="Number of simulations (10-10000)")
@click.option(
    "--max-events",
    "max_events_per_unit",
    type=int,
    help="Maximum events per unit",
)
@click.option("--workers", type=int, default=1, help="Worker processes")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json", "csv"]),
    default="table",
    help="Output format",
)
def ensemble(
    config_path: Optional[Path],
    events: dict[str, float],
    seed: Optional[int],
    workers: int,
    output_format: str,
    **overrides: Any,
) -> None:
    """Run many simulations and summarize the outcome distribution.

    \b
    Examples:
        efficiency-forecast ensemble -e outage=5 -e bug=2 --runs 1000 --seed 7
        efficiency-forecast ensemble --config scenario.json --format csv > runs.csv
    """
    try:
        config = _build_config(config_path, events, **overrides)
        runner = EnsembleRunner(config, seed=seed, max_workers=workers)
    except (ValidationError, ValueError) as e:
        _fail_validation(e)
        return

    try:
        if output_format == "table":
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task("Running simulations...", total=config.num_runs)
                result = runner.analyze(
                    progress_callback=lambda done, total: progress.update(task, completed=done)
                )
        else:
            result = runner.analyze()
    except SimulationCancelledError as e:
        console.print(f"[yellow]Cancelled:[/yellow] {e}")
        sys.exit(1)

    report = EnsembleReport(result)
    logging_config.log_ensemble_summary(
        logger, report.summary.to_dict(), scenario=config.to_dict()
    )

    if output_format == "json":
        click.echo(report.export_json())
        return
    if output_format == "csv":
        click.echo(report.export_csv(), nl=False)
        return

    table = Table(title="Ensemble Statistics", show_header=True)
    table.add_column("Statistic", style="cyan")
    table.add_column("Value", style="green")
    for card in report.get_stat_cards():
        table.add_row(card["label"], card["value"])
    console.print(table)

    charts = report.get_chart_data()
    console.print(_histogram_table("Final Efficiency Distribution (%)", charts.efficiency_histogram))
    if charts.units_to_goal_histogram:
        console.print(
            _histogram_table("Units to Reach Goal Distribution", charts.units_to_goal_histogram)
        )
    if charts.efficiency_line is not None:
        console.print(f"[dim]{charts.efficiency_line.title}: {len(charts.efficiency_line.values)} points[/dim]")


# ============================================================================
# FORECAST
# ============================================================================


@cli.command()
@click.option("--current", type=float, required=True, help="Current efficiency (0-1)")
@click.option("--target", type=float, required=True, help="Target efficiency (0-1)")
@click.option("--alpha", type=float, default=0.04, help="EWMA smoothing factor")
def forecast(current: float, target: float, alpha: float) -> None:
    """Forecast perfect units needed to move from CURRENT to TARGET.

    \b
    Examples:
        efficiency-forecast forecast --current 0.65 --target 0.85 --alpha 0.04
    """
    try:
        tracker = EfficiencyTracker(
            target_efficiency=target, alpha=alpha, initial_efficiency=current
        )
    except InvalidParameterError as e:
        _fail_validation(e)
        return

    units = tracker.forecast_units_to_goal()
    if units is None:
        console.print(f"[yellow]Unreachable:[/yellow] {describe_forecast(units, target)}")
    else:
        console.print(describe_forecast(units, target))


# ============================================================================
# CONFIG SCAFFOLDING
# ============================================================================


@cli.command("init-config")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def init_config(path: Path, force: bool) -> None:
    """Write an example scenario file to PATH."""
    if path.exists() and not force:
        console.print(f"[red]Error:[/red] {path} already exists (use --force)")
        sys.exit(1)

    example = SimulationConfig(
        severity_profile={"minor_defect": 1, "rework": 3, "outage": 8},
        bad_events=42,
        duration=120,
    )
    save_config(example, path)
    console.print(f"[green]✓[/green] Wrote example scenario to {path}")


def main() -> None:
    """Main entry point for CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(1)


if __name__ == "__main__":
    main()
