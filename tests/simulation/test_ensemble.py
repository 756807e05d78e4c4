"""Tests for the Monte Carlo ensemble runner."""

import threading

import pytest

from efficiency_forecast.exceptions import SimulationCancelledError
from efficiency_forecast.simulation.core.events import create_rng
from efficiency_forecast.simulation.engine.ensemble import (
    EnsembleResult,
    EnsembleRunner,
    naive_perfect_units_needed,
    simulate_outcome,
)


class TestNaiveEstimate:
    """Test the linear-model perfect-units baseline."""

    def test_documented_value(self):
        """Test 42 bad events over 120 with a 0.85 target."""
        # (0.85 * 120 - 78) / 0.15 = 160
        assert naive_perfect_units_needed(42, 120, 0.85) == 160

    def test_target_of_one_is_infinite(self):
        """Test a perfect target has no finite estimate."""
        assert naive_perfect_units_needed(10, 100, 1.0) is None

    def test_rounds_half_up(self):
        """Test .5 results round up."""
        # (0.5 * 2 - 0.75) / 0.5 = 0.5
        assert naive_perfect_units_needed(1.25, 2, 0.5) == 1
        # (0.5 * 3 - 2) / 0.5 = -1.0
        assert naive_perfect_units_needed(1, 3, 0.5) == -1
        # (0.5 * 4 - 2.25) / 0.5 = -0.5
        assert naive_perfect_units_needed(1.75, 4, 0.5) == 0

    def test_target_already_met_is_negative(self):
        """Test the raw estimate is returned even when negative."""
        assert naive_perfect_units_needed(0, 100, 0.5) < 0


class TestSimulateOutcome:
    """Test single ensemble member simulation."""

    def test_outcome_fields(self, config):
        """Test the outcome carries run id and forecast."""
        outcome = simulate_outcome(config, 7, create_rng(1))
        assert outcome.run_id == 7
        assert 0.0 <= outcome.final_efficiency <= 1.0
        assert outcome.units_to_goal is None or outcome.units_to_goal >= 0

    def test_cancel_between_units(self, config):
        """Test a set cancel event aborts the run."""
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(SimulationCancelledError):
            simulate_outcome(config, 0, create_rng(1), cancel)


class TestEnsembleRunner:
    """Test EnsembleRunner."""

    def test_documented_ensemble(self, config):
        """Test 100 runs of 25 units with 5 max events per unit."""
        outcomes = EnsembleRunner(config, seed=2024).run()

        assert len(outcomes) == 100
        assert [o.run_id for o in outcomes] == list(range(100))
        for outcome in outcomes:
            assert 0.0 <= outcome.final_efficiency <= 1.0
            assert outcome.units_to_goal is None or outcome.units_to_goal >= 0

    def test_num_runs_override(self, config):
        """Test num_runs argument overrides the config."""
        assert len(EnsembleRunner(config, seed=1).run(num_runs=12)) == 12

    def test_zero_runs(self, config):
        """Test an empty ensemble."""
        assert EnsembleRunner(config, seed=1).run(num_runs=0) == []

    def test_negative_runs_rejected(self, config):
        with pytest.raises(ValueError):
            EnsembleRunner(config).run(num_runs=-1)

    @pytest.mark.parametrize("kwargs", [{"max_workers": 0}, {"chunk_size": 0}])
    def test_invalid_runner_settings(self, config, kwargs):
        with pytest.raises(ValueError):
            EnsembleRunner(config, **kwargs)

    def test_seed_reproducibility(self, config):
        """Test the same seed reproduces the ensemble exactly."""
        a = EnsembleRunner(config, seed=42).run(num_runs=30)
        b = EnsembleRunner(config, seed=42).run(num_runs=30)
        assert a == b

    def test_different_seeds_differ(self, config):
        a = EnsembleRunner(config, seed=1).run(num_runs=30)
        b = EnsembleRunner(config, seed=2).run(num_runs=30)
        assert a != b

    def test_runs_are_independent(self, config):
        """Test a run's outcome does not depend on how many runs precede it."""
        short = EnsembleRunner(config, seed=5).run(num_runs=10)
        long = EnsembleRunner(config, seed=5).run(num_runs=20)
        assert long[:10] == short

    def test_progress_callback(self, config):
        """Test progress is reported after every run."""
        calls = []
        EnsembleRunner(config, seed=3).run(
            num_runs=15, progress_callback=lambda done, total: calls.append((done, total))
        )
        assert calls == [(i, 15) for i in range(1, 16)]

    def test_cancel_before_start(self, config):
        """Test cancellation returns no completed runs."""
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(SimulationCancelledError) as exc_info:
            EnsembleRunner(config, seed=3).run(cancel_event=cancel)
        assert exc_info.value.completed == []

    def test_cancel_mid_ensemble(self, config):
        """Test cancellation keeps the runs finished so far."""
        cancel = threading.Event()

        def stop_after_five(done, total):
            if done == 5:
                cancel.set()

        with pytest.raises(SimulationCancelledError) as exc_info:
            EnsembleRunner(config, seed=3).run(
                cancel_event=cancel, progress_callback=stop_after_five
            )

        completed = exc_info.value.completed
        assert len(completed) == 5
        assert [o.run_id for o in completed] == list(range(5))
        assert "5 completed runs" in str(exc_info.value)

    @pytest.mark.slow
    def test_parallel_matches_sequential(self, config):
        """Test worker processes produce the same outcomes in run order."""
        sequential = EnsembleRunner(config, seed=11).run(num_runs=60)
        parallel = EnsembleRunner(config, seed=11, max_workers=2, chunk_size=20).run(
            num_runs=60
        )
        assert parallel == sequential

    @pytest.mark.slow
    def test_parallel_cancel_at_chunk_boundary(self, config):
        """Test parallel cancellation keeps whole finished chunks only."""
        cancel = threading.Event()

        def stop_after_first_chunk(done, total):
            cancel.set()

        runner = EnsembleRunner(config, seed=11, max_workers=2, chunk_size=20)
        with pytest.raises(SimulationCancelledError) as exc_info:
            runner.run(
                num_runs=100,
                cancel_event=cancel,
                progress_callback=stop_after_first_chunk,
            )

        completed = exc_info.value.completed
        assert len(completed) == 20
        run_ids = [o.run_id for o in completed]
        assert run_ids[0] % 20 == 0
        assert run_ids == list(range(run_ids[0], run_ids[0] + 20))


class TestAnalyze:
    """Test EnsembleRunner.analyze."""

    def test_analyze_result(self, config):
        """Test scenario-level figures are attached."""
        result = EnsembleRunner(config, seed=8).analyze(num_runs=20)

        assert isinstance(result, EnsembleResult)
        assert result.n_runs == 20
        assert result.initial_efficiency == pytest.approx(0.65)
        assert result.target_efficiency == pytest.approx(0.85)
        assert result.naive_perfect_units == 160
        assert result.seed == 8
