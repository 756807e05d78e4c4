"""Unit tests for event sampling strategies."""

from collections import Counter

import numpy as np
import pytest

from efficiency_forecast.simulation.core.events import (
    EventSampler,
    UniformCountStrategy,
    WeightedStrategy,
    create_rng,
)


class TestWeightedStrategy:
    """Test inverse-severity weighted sampling."""

    def test_is_event_sampler(self, sample_profile):
        """Test strategy implements the sampler interface."""
        assert isinstance(WeightedStrategy(sample_profile), EventSampler)

    def test_event_count_bounds(self, sample_profile, rng):
        """Test each unit has zero, one or two events from the profile."""
        strategy = WeightedStrategy(sample_profile)
        for _ in range(500):
            events = strategy.sample(rng)
            assert 0 <= len(events) <= 2
            assert all(event in sample_profile for event in events)

    def test_always_perfect(self, sample_profile, rng):
        """Test a 100% perfect-unit chance never yields events."""
        strategy = WeightedStrategy(sample_profile, perfect_unit_probability=100)
        assert all(strategy.sample(rng) == [] for _ in range(200))

    def test_never_perfect_single_event(self, sample_profile, rng):
        """Test 0% perfect and 0% second event yields exactly one event."""
        strategy = WeightedStrategy(
            sample_profile, perfect_unit_probability=0, second_event_probability=0
        )
        assert all(len(strategy.sample(rng)) == 1 for _ in range(200))

    def test_always_two_events(self, sample_profile, rng):
        """Test 100% second event chance yields two events."""
        strategy = WeightedStrategy(
            sample_profile, perfect_unit_probability=0, second_event_probability=100
        )
        assert all(len(strategy.sample(rng)) == 2 for _ in range(200))

    def test_empty_profile(self, rng):
        """Test an empty profile produces no events."""
        strategy = WeightedStrategy({}, perfect_unit_probability=0)
        assert strategy.sample(rng) == []
        assert strategy.total_weight == 0.0

    def test_less_severe_events_more_likely(self, rng):
        """Test draw frequency follows inverse severity."""
        strategy = WeightedStrategy(
            {"mild": 1, "severe": 4},
            perfect_unit_probability=0,
            second_event_probability=0,
        )
        counts = Counter(strategy.sample(rng)[0] for _ in range(5000))

        # Expected share of "mild" is 1 / (1 + 0.25) = 0.8
        assert counts["mild"] / 5000 == pytest.approx(0.8, abs=0.03)

    def test_zero_severity_weighted_as_one(self, rng):
        """Test zero severity counts as weight 1 rather than infinite."""
        strategy = WeightedStrategy({"free": 0, "unit": 1})
        assert strategy.total_weight == pytest.approx(2.0)

    def test_reproducible_with_seed(self, sample_profile):
        """Test identical seeds give identical sequences."""
        strategy = WeightedStrategy(sample_profile)
        rng_a, rng_b = create_rng(7), create_rng(7)
        seq_a = [strategy.sample(rng_a) for _ in range(50)]
        seq_b = [strategy.sample(rng_b) for _ in range(50)]
        assert seq_a == seq_b


class TestUniformCountStrategy:
    """Test uniform-count sampling."""

    def test_count_bounds(self, rng):
        """Test counts stay within [0, max] and cover the range."""
        strategy = UniformCountStrategy(["a", "b", "c"], max_events_per_unit=3)
        lengths = {len(strategy.sample(rng)) for _ in range(500)}
        assert lengths == {0, 1, 2, 3}

    def test_duplicates_allowed(self, rng):
        """Test events are drawn with replacement."""
        strategy = UniformCountStrategy(["only"], max_events_per_unit=4)
        samples = [strategy.sample(rng) for _ in range(200)]
        assert any(len(s) > 1 for s in samples)
        assert all(set(s) <= {"only"} for s in samples)

    def test_zero_max_events(self, rng):
        """Test max of zero always yields a perfect unit."""
        strategy = UniformCountStrategy(["a"], max_events_per_unit=0)
        assert all(strategy.sample(rng) == [] for _ in range(50))

    def test_empty_pool(self, rng):
        """Test an empty pool yields no events."""
        strategy = UniformCountStrategy([], max_events_per_unit=5)
        assert all(strategy.sample(rng) == [] for _ in range(50))

    def test_negative_max_rejected(self):
        """Test negative max events is rejected."""
        with pytest.raises(ValueError, match="max_events_per_unit"):
            UniformCountStrategy(["a"], max_events_per_unit=-1)

    def test_events_come_from_pool(self, rng):
        """Test every drawn label belongs to the pool."""
        pool = ["x", "y", "z"]
        strategy = UniformCountStrategy(pool)
        for _ in range(200):
            assert all(event in pool for event in strategy.sample(rng))


def test_create_rng_returns_generator():
    """Test create_rng returns a numpy Generator."""
    assert isinstance(create_rng(1), np.random.Generator)
    assert create_rng(1).random() == create_rng(1).random()
