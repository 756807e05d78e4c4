"""Simulation configuration and validation.

Holds the caller-supplied scenario parameters, derives the initial and target
efficiency from them, and rejects invalid values before any run starts.
"""

from dataclasses import asdict, dataclass, field, fields
import json
import os
from pathlib import Path
from typing import Any, Optional

import structlog

from efficiency_forecast.exceptions import ConfigValidationError

logger = structlog.get_logger(__name__)

# Allowed ranges
MIN_UNITS = 1
MAX_UNITS = 365
MIN_ALPHA = 0.01
MAX_ALPHA = 1.0
MIN_RUNS = 10
MAX_RUNS = 10_000

ENV_PREFIX = "EFFICIENCY_"


@dataclass
class SimulationConfig:
    """Scenario parameters shared by single-run and ensemble modes.

    Attributes:
        severity_profile: Mapping of event label to non-negative severity
        bad_events: Historical count of bad events
        duration: Historical duration the bad events were observed over
        num_units: Units (e.g. days) simulated per run (1-365)
        max_severity_per_unit: Severity at which a unit scores zero
        target_efficiency_increment: Improvement goal in percentage points (0-100)
        alpha: EWMA smoothing factor (0.01-1)
        perfect_unit_probability: Chance of an event-free unit, single-run mode (0-100)
        second_event_probability: Chance of a second event, single-run mode (0-100)
        num_runs: Ensemble size (10-10000)
        max_events_per_unit: Upper bound on events per unit, ensemble mode
    """

    severity_profile: dict[str, float] = field(default_factory=dict)
    bad_events: float = 0
    duration: float = 1
    num_units: int = 25
    max_severity_per_unit: float = 10
    target_efficiency_increment: float = 20
    alpha: float = 0.04
    perfect_unit_probability: float = 40
    second_event_probability: float = 35
    num_runs: int = 100
    max_events_per_unit: int = 5

    def __post_init__(self) -> None:
        """Validate configuration."""
        self.severity_profile = dict(self.severity_profile)
        errors = self.validate()
        if errors:
            logger.warning("config_invalid", errors=errors)
            raise ConfigValidationError(errors)

    def validate(self) -> list[str]:
        """Collect every validation problem.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if not self.severity_profile:
            errors.append("Add at least one event type to the severity profile")
        for label, severity in self.severity_profile.items():
            if not str(label).strip():
                errors.append("Event names must not be blank")
            if not isinstance(severity, (int, float)) or isinstance(severity, bool) or severity < 0:
                errors.append(f"Severity for '{label}' must be non-negative, got {severity}")

        if self.bad_events < 0:
            errors.append(f"bad_events must be non-negative, got {self.bad_events}")
        if self.duration <= 0:
            errors.append(f"duration must be positive, got {self.duration}")
        if not MIN_UNITS <= self.num_units <= MAX_UNITS:
            errors.append(
                f"num_units must be {MIN_UNITS}-{MAX_UNITS}, got {self.num_units}"
            )
        if self.max_severity_per_unit <= 0:
            errors.append(
                f"max_severity_per_unit must be positive, got {self.max_severity_per_unit}"
            )
        if not 0 <= self.target_efficiency_increment <= 100:
            errors.append(
                "target_efficiency_increment must be 0-100, "
                f"got {self.target_efficiency_increment}"
            )
        if not MIN_ALPHA <= self.alpha <= MAX_ALPHA:
            errors.append(f"alpha must be {MIN_ALPHA}-{MAX_ALPHA}, got {self.alpha}")
        if not 0 <= self.perfect_unit_probability <= 100:
            errors.append(
                f"perfect_unit_probability must be 0-100, got {self.perfect_unit_probability}"
            )
        if not 0 <= self.second_event_probability <= 100:
            errors.append(
                f"second_event_probability must be 0-100, got {self.second_event_probability}"
            )
        if not MIN_RUNS <= self.num_runs <= MAX_RUNS:
            errors.append(f"num_runs must be {MIN_RUNS}-{MAX_RUNS}, got {self.num_runs}")
        if self.max_events_per_unit < 0:
            errors.append(
                f"max_events_per_unit must be non-negative, got {self.max_events_per_unit}"
            )

        return errors

    @property
    def initial_efficiency(self) -> float:
        """Historical efficiency, ``max(0, 1 - bad_events / duration)``."""
        return max(0.0, 1 - self.bad_events / self.duration)

    @property
    def target_efficiency(self) -> float:
        """Initial efficiency plus the increment, capped at 1.0."""
        return min(1.0, self.initial_efficiency + self.target_efficiency_increment / 100)

    @property
    def event_pool(self) -> list[str]:
        return list(self.severity_profile.keys())

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a JSON-compatible dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SimulationConfig":
        """Build a configuration from a plain dict.

        Raises:
            ConfigValidationError: If unknown keys are present or values are invalid
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigValidationError([f"Unknown configuration key: {key}" for key in unknown])
        return cls(**data)

    def with_overrides(self, **overrides: Any) -> "SimulationConfig":
        """Return a copy with the given non-None fields replaced."""
        data = self.to_dict()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return SimulationConfig.from_dict(data)


def read_config_data(filepath: Path) -> dict[str, Any]:
    """Read the raw scenario mapping from a JSON file without validating it.

    Lets callers merge further settings in before a single validation pass.

    Raises:
        ConfigValidationError: If the file cannot be read or is not a JSON object
    """
    filepath = Path(filepath)
    try:
        with open(filepath) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigValidationError([f"Cannot read config file {filepath}: {e}"]) from e

    if not isinstance(data, dict):
        raise ConfigValidationError([f"Config file {filepath} must contain a JSON object"])

    logger.info("config_loaded", path=str(filepath))
    return data


def load_config(filepath: Path) -> SimulationConfig:
    """Load a simulation configuration from a JSON file.

    Args:
        filepath: Path to the configuration file

    Returns:
        Validated SimulationConfig

    Raises:
        ConfigValidationError: If the file cannot be parsed or holds invalid values
    """
    return SimulationConfig.from_dict(read_config_data(filepath))


def save_config(config: SimulationConfig, filepath: Path) -> None:
    """Save a simulation configuration as JSON."""
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
    logger.info("config_saved", path=str(filepath))


def load_config_from_env(
    severity_profile: Optional[dict[str, float]] = None,
) -> SimulationConfig:
    """Build a configuration from ``EFFICIENCY_*`` environment variables.

    ``EFFICIENCY_SEVERITY_PROFILE`` holds the profile as a JSON object; the
    ``severity_profile`` argument is used when it is unset.
    """
    defaults = SimulationConfig.__dataclass_fields__
    data: dict[str, Any] = {}

    for name, field_def in defaults.items():
        if name == "severity_profile":
            continue
        raw = os.getenv(ENV_PREFIX + name.upper())
        if raw is None:
            continue
        caster = int if field_def.type is int else float
        try:
            data[name] = caster(raw)
        except ValueError as e:
            raise ConfigValidationError(
                [f"{ENV_PREFIX}{name.upper()} must be a number, got {raw!r}"]
            ) from e

    raw_profile = os.getenv(ENV_PREFIX + "SEVERITY_PROFILE")
    if raw_profile:
        try:
            data["severity_profile"] = json.loads(raw_profile)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(
                [f"{ENV_PREFIX}SEVERITY_PROFILE must be a JSON object: {e}"]
            ) from e
    elif severity_profile is not None:
        data["severity_profile"] = severity_profile

    return SimulationConfig.from_dict(data)
