"""Structured logging setup for efficiency forecasting.

Log events are rendered by structlog and handed to the standard library root
logger, which writes to stderr (and optionally a file). Stdout is left to the
CLI for tables, JSON and CSV.
"""

import functools
import logging
import os
from pathlib import Path
import sys
import time
from typing import Any, Callable, Dict, List, Optional

import structlog
from structlog.typing import EventDict, Processor

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    enable_colors: bool = True,
) -> None:
    """Configure structlog and the stdlib handlers it writes through.

    Args:
        log_level: One of LOG_LEVELS; unknown names fall back to INFO
        log_format: 'json' for machine-readable lines, anything else for console
        log_file: Also append rendered events to this file
        enable_colors: Colorize console output
    """
    level_name = log_level.upper()
    level = getattr(logging, level_name) if level_name in LOG_LEVELS else logging.INFO

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    structlog.configure(
        processors=_build_processors(log_format, enable_colors),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )
    _install_handlers(level, log_file)


def _build_processors(log_format: str, enable_colors: bool) -> List[Processor]:
    """Processor chain shared by both output formats."""
    chain: List[Processor] = [
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_worker_pid,
    ]
    if log_format.lower() == "json":
        chain.append(structlog.processors.JSONRenderer())
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=enable_colors))
    return chain


def _install_handlers(level: int, log_file: Optional[str]) -> None:
    """Point the root logger at stderr and the optional log file."""
    root = logging.getLogger()
    root.setLevel(level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    # Events arrive fully rendered
    plain = logging.Formatter("%(message)s")
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(plain)
        root.addHandler(handler)

    # Pool shutdown chatter from ensemble workers
    logging.getLogger("concurrent.futures").setLevel(logging.WARNING)


def _add_worker_pid(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag events with the process id so ensemble worker output can be told apart."""
    event_dict["pid"] = os.getpid()
    return event_dict


def get_logger(name: str, **context: Any) -> structlog.BoundLogger:
    """Get a structured logger, optionally bound to context.

    Args:
        name: Logger name (typically __name__)
        **context: Key/value pairs attached to every event

    Returns:
        structlog logger
    """
    logger = structlog.get_logger(name)
    return logger.bind(**context) if context else logger


def log_ensemble_summary(
    logger: structlog.BoundLogger,
    summary: Dict[str, Any],
    scenario: Optional[Dict[str, Any]] = None,
) -> None:
    """Emit one ``ensemble_summary`` event.

    Args:
        logger: Structured logger instance
        summary: EnsembleSummary.to_dict() output
        scenario: SimulationConfig.to_dict() output the ensemble ran with
    """
    fields: Dict[str, Any] = {"summary": summary}
    if scenario:
        fields["scenario"] = scenario
    logger.info("ensemble_summary", **fields)


def log_performance(logger: Optional[structlog.BoundLogger] = None) -> Callable:
    """Decorator timing a call and logging ``function_executed`` or ``function_failed``."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            log = logger or get_logger(func.__module__)
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log.error(
                    "function_failed",
                    function=func.__qualname__,
                    duration_ms=(time.perf_counter() - started) * 1000,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

            log.info(
                "function_executed",
                function=func.__qualname__,
                args={"args_count": len(args), "kwargs_count": len(kwargs)},
                duration_ms=(time.perf_counter() - started) * 1000,
            )
            return result

        return wrapper

    return decorator
