"""Root-level pytest configuration and shared fixtures."""

import sys

import numpy as np
import pytest
import structlog

from efficiency_forecast.config import SimulationConfig


def pytest_configure(config):
    """Register custom markers and configure test environment."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration")
    config.addinivalue_line("markers", "cli: mark test as CLI test")

    _configure_test_logging()


def _configure_test_logging() -> None:
    """Configure structlog for test environment with compatible processors."""
    # Use simpler processors that don't require stdlib logger attributes
    processors = [
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]

    # Logs go to stderr so CLI output captured on stdout stays parseable
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.BoundLogger,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        context_class=dict,
        cache_logger_on_first_use=False,  # Disable caching in tests
    )


# ============================================================================
# Scenario fixtures
# ============================================================================


@pytest.fixture
def sample_profile():
    """Severity profile with a spread of severities."""
    return {"minor_defect": 1, "rework": 3, "outage": 8}


@pytest.fixture
def config(sample_profile):
    """Scenario with 42 bad events over 120 units of history."""
    return SimulationConfig(
        severity_profile=sample_profile,
        bad_events=42,
        duration=120,
        num_units=25,
        max_severity_per_unit=10,
        target_efficiency_increment=20,
        alpha=0.04,
        num_runs=100,
        max_events_per_unit=5,
    )


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(12345)
