"""Monte Carlo ensemble of independent efficiency simulations."""

from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
import math
import threading
from typing import Callable, Optional

import numpy as np
import structlog

from efficiency_forecast.config import SimulationConfig
from efficiency_forecast.exceptions import SimulationCancelledError
from efficiency_forecast.logging_config import log_performance
from efficiency_forecast.simulation.core.events import UniformCountStrategy
from efficiency_forecast.simulation.core.tracker import EfficiencyTracker
from efficiency_forecast.simulation.engine.simulator import RunOutcome

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[int, int], None]

DEFAULT_CHUNK_SIZE = 250


def naive_perfect_units_needed(
    bad_events: float, duration: float, target_efficiency: float
) -> Optional[int]:
    """Perfect units needed under a simple linear (non-EWMA) model.

    Treats efficiency as ``good units / total units`` and asks how many extra
    perfect units lift the ratio to the target. This is a baseline for
    comparison and is unrelated to the EWMA forecast.

    Args:
        bad_events: Historical count of bad events
        duration: Historical duration
        target_efficiency: Efficiency goal (0.0-1.0)

    Returns:
        Rounded unit count (may be negative when the target is already met),
        or None when the target is 1.0 or more (infinite)
    """
    if target_efficiency >= 1:
        return None
    raw = (target_efficiency * duration - (duration - bad_events)) / (1 - target_efficiency)
    # Round half up
    return math.floor(raw + 0.5)


def simulate_outcome(
    config: SimulationConfig,
    run_id: int,
    rng: np.random.Generator,
    cancel_event: Optional[threading.Event] = None,
) -> RunOutcome:
    """Run one ensemble member and keep only its final outcome.

    Args:
        config: Scenario configuration
        run_id: ID of this run
        rng: Random source owned by this run
        cancel_event: Checked between units

    Returns:
        RunOutcome for the run

    Raises:
        SimulationCancelledError: If cancel_event is set mid-run
    """
    tracker = EfficiencyTracker(
        target_efficiency=config.target_efficiency,
        alpha=config.alpha,
        initial_efficiency=config.initial_efficiency,
        max_severity_per_unit=config.max_severity_per_unit,
    )
    strategy = UniformCountStrategy(config.event_pool, config.max_events_per_unit)

    for _ in range(config.num_units):
        if cancel_event is not None and cancel_event.is_set():
            raise SimulationCancelledError()
        tracker.process_unit(strategy.sample(rng), config.severity_profile)

    return RunOutcome(
        run_id=run_id,
        final_efficiency=tracker.current_efficiency,
        units_to_goal=tracker.forecast_units_to_goal(),
    )


def _simulate_chunk(
    config: SimulationConfig,
    start: int,
    seeds: list[np.random.SeedSequence],
) -> list[RunOutcome]:
    """Run a contiguous block of ensemble members in a worker process."""
    return [
        simulate_outcome(config, start + offset, np.random.default_rng(seed))
        for offset, seed in enumerate(seeds)
    ]


@dataclass
class EnsembleResult:
    """Outcomes of an ensemble plus the scenario-level figures.

    Attributes:
        outcomes: One RunOutcome per run, ordered by run_id
        initial_efficiency: Starting efficiency derived from history
        target_efficiency: Efficiency goal
        naive_perfect_units: Linear-model baseline (None means infinite)
        seed: Seed the ensemble was generated from, if any
    """

    outcomes: list[RunOutcome] = field(default_factory=list)
    initial_efficiency: float = 0.0
    target_efficiency: float = 0.0
    naive_perfect_units: Optional[int] = None
    seed: Optional[int] = None

    @property
    def n_runs(self) -> int:
        return len(self.outcomes)


class EnsembleRunner:
    """Execute many independent simulation runs.

    Every run gets its own random generator spawned from a single
    ``SeedSequence``, so an ensemble is reproducible from its seed and the
    outcomes do not depend on execution order or worker count.
    """

    def __init__(
        self,
        config: SimulationConfig,
        seed: Optional[int] = None,
        max_workers: int = 1,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """Initialize ensemble runner.

        Args:
            config: Validated scenario configuration
            seed: Seed for reproducibility (None = fresh entropy)
            max_workers: Worker processes; 1 runs in the calling thread
            chunk_size: Runs per worker task in parallel mode
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self.config = config
        self.seed = seed
        self.max_workers = max_workers
        self.chunk_size = chunk_size

    def spawn_seeds(self, num_runs: int) -> list[np.random.SeedSequence]:
        """Create one independent seed sequence per run."""
        return np.random.SeedSequence(self.seed).spawn(num_runs)

    def run(
        self,
        num_runs: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> list[RunOutcome]:
        """Run the ensemble.

        Args:
            num_runs: Number of runs (defaults to the configured num_runs)
            cancel_event: When set, the ensemble stops cooperatively. Sequential
                runs check it between units; worker processes never see it, so
                parallel runs stop at the next chunk boundary
            progress_callback: Called as ``callback(completed, total)``

        Returns:
            One RunOutcome per run, ordered by run_id

        Raises:
            SimulationCancelledError: If cancelled; carries the completed outcomes
        """
        num_runs = self.config.num_runs if num_runs is None else num_runs
        if num_runs < 0:
            raise ValueError(f"num_runs must be non-negative, got {num_runs}")

        logger.info(
            "ensemble_started",
            num_runs=num_runs,
            num_units=self.config.num_units,
            max_workers=self.max_workers,
            seed=self.seed,
        )

        seeds = self.spawn_seeds(num_runs)
        if self.max_workers > 1 and num_runs > self.chunk_size:
            outcomes = self._run_parallel(seeds, cancel_event, progress_callback)
        else:
            outcomes = self._run_sequential(seeds, cancel_event, progress_callback)

        logger.info("ensemble_complete", num_runs=len(outcomes))
        return outcomes

    def _run_sequential(
        self,
        seeds: list[np.random.SeedSequence],
        cancel_event: Optional[threading.Event],
        progress_callback: Optional[ProgressCallback],
    ) -> list[RunOutcome]:
        """Run all members in the calling thread."""
        total = len(seeds)
        log_interval = max(1, total // 10)
        outcomes: list[RunOutcome] = []

        for run_id, seed in enumerate(seeds):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("ensemble_cancelled", completed=len(outcomes), total=total)
                raise SimulationCancelledError(outcomes)

            try:
                outcome = simulate_outcome(
                    self.config, run_id, np.random.default_rng(seed), cancel_event
                )
            except SimulationCancelledError:
                logger.info("ensemble_cancelled", completed=len(outcomes), total=total)
                raise SimulationCancelledError(outcomes) from None
            outcomes.append(outcome)

            completed = run_id + 1
            if completed % log_interval == 0:
                logger.info("ensemble_progress", completed=completed, total=total)
            if progress_callback is not None:
                progress_callback(completed, total)

        return outcomes

    def _run_parallel(
        self,
        seeds: list[np.random.SeedSequence],
        cancel_event: Optional[threading.Event],
        progress_callback: Optional[ProgressCallback],
    ) -> list[RunOutcome]:
        """Run members in worker processes, one chunk per task.

        Cancellation is checked as each chunk finishes; chunks already running
        complete but their outcomes are discarded.
        """
        total = len(seeds)
        chunks = [
            (start, seeds[start : start + self.chunk_size])
            for start in range(0, total, self.chunk_size)
        ]
        results: dict[int, list[RunOutcome]] = {}
        completed = 0

        with ProcessPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(_simulate_chunk, self.config, start, chunk_seeds): start
                for start, chunk_seeds in chunks
            }

            for future in as_completed(futures):
                if cancel_event is not None and cancel_event.is_set():
                    for pending in futures:
                        pending.cancel()
                    done = [
                        outcome
                        for start in sorted(results)
                        for outcome in results[start]
                    ]
                    logger.info("ensemble_cancelled", completed=len(done), total=total)
                    raise SimulationCancelledError(done)

                start = futures[future]
                results[start] = future.result()
                completed += len(results[start])

                logger.info("ensemble_progress", completed=completed, total=total)
                if progress_callback is not None:
                    progress_callback(completed, total)

        return [outcome for start in sorted(results) for outcome in results[start]]

    @log_performance()
    def analyze(
        self,
        num_runs: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> EnsembleResult:
        """Run the ensemble and attach the scenario-level figures.

        Returns:
            EnsembleResult with outcomes and the naive perfect-units baseline
        """
        outcomes = self.run(num_runs, cancel_event, progress_callback)
        return EnsembleResult(
            outcomes=outcomes,
            initial_efficiency=self.config.initial_efficiency,
            target_efficiency=self.config.target_efficiency,
            naive_perfect_units=naive_perfect_units_needed(
                self.config.bad_events,
                self.config.duration,
                self.config.target_efficiency,
            ),
            seed=self.seed,
        )
