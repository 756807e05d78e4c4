"""Random event generation for simulated units.

Two interchangeable sampling strategies produce the event labels for a unit:
an inverse-severity weighted draw for detailed single runs, and a uniform
count draw for bulk ensemble runs.
"""

from abc import ABC, abstractmethod
from typing import Mapping, Optional, Sequence

import numpy as np
import structlog

logger = structlog.get_logger(__name__)


class EventSampler(ABC):
    """Abstract base class for per-unit event sampling strategies."""

    @abstractmethod
    def sample(self, rng: np.random.Generator) -> list[str]:
        """Draw the events that occur during one unit.

        Args:
            rng: Random source owned by the calling run

        Returns:
            Event labels in order of occurrence (may be empty)
        """
        pass


class WeightedStrategy(EventSampler):
    """Draw zero, one or two events weighted by inverse severity.

    A unit is perfect with probability ``perfect_unit_probability`` percent.
    Otherwise one event is drawn, and with probability
    ``second_event_probability`` percent a second independent event is added.
    Less severe events are proportionally more likely.
    """

    def __init__(
        self,
        severity_profile: Mapping[str, float],
        perfect_unit_probability: float = 40.0,
        second_event_probability: float = 35.0,
    ) -> None:
        """Initialize weighted strategy.

        Args:
            severity_profile: Mapping of event label to severity
            perfect_unit_probability: Chance of an event-free unit (0-100)
            second_event_probability: Chance of a second event (0-100)
        """
        self.labels = list(severity_profile.keys())
        self.perfect_unit_probability = perfect_unit_probability
        self.second_event_probability = second_event_probability

        # Severity 0 or missing counts as weight 1
        weights = np.array(
            [1.0 / (severity_profile[label] or 1) for label in self.labels],
            dtype=float,
        )
        self.cumulative_weights = np.cumsum(weights)

    @property
    def total_weight(self) -> float:
        return float(self.cumulative_weights[-1]) if len(self.labels) else 0.0

    def _draw_label(self, rng: np.random.Generator) -> str:
        """Roulette-wheel draw of one label."""
        target = rng.random() * self.total_weight
        index = int(np.searchsorted(self.cumulative_weights, target, side="left"))
        return self.labels[min(index, len(self.labels) - 1)]

    def sample(self, rng: np.random.Generator) -> list[str]:
        """Draw the events for one unit."""
        if not self.labels:
            return []

        if rng.random() * 100 < self.perfect_unit_probability:
            return []

        events = [self._draw_label(rng)]
        if rng.random() * 100 < self.second_event_probability:
            events.append(self._draw_label(rng))

        logger.debug("weighted_events_sampled", events=events)
        return events


class UniformCountStrategy(EventSampler):
    """Draw a uniform number of events, each uniformly from a pool.

    The count is uniform in ``[0, max_events_per_unit]`` and each event is
    picked with replacement, so duplicates are expected.
    """

    def __init__(
        self,
        event_pool: Sequence[str],
        max_events_per_unit: int = 5,
    ) -> None:
        """Initialize uniform count strategy.

        Args:
            event_pool: Event labels to draw from
            max_events_per_unit: Upper bound (inclusive) on events per unit
        """
        if max_events_per_unit < 0:
            raise ValueError(
                f"max_events_per_unit must be non-negative, got {max_events_per_unit}"
            )
        self.event_pool = list(event_pool)
        self.max_events_per_unit = max_events_per_unit

    def sample(self, rng: np.random.Generator) -> list[str]:
        """Draw the events for one unit."""
        count = int(rng.integers(0, self.max_events_per_unit + 1))
        if count == 0 or not self.event_pool:
            return []

        indices = rng.integers(0, len(self.event_pool), size=count)
        return [self.event_pool[i] for i in indices]


def create_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Create an independent random source for one run."""
    return np.random.default_rng(seed)
