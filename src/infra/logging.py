"""structlog setup for the gateway and scripts.

setup_logging() runs once at startup. bound_request() tags every line
emitted while one assistant request is handled with its tenant and session.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from structlog.types import Processor

_LEVELS = logging.getLevelNamesMapping()


def _renderer_chain(json_output: bool) -> list[Processor]:
    if json_output:
        return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer()]


def setup_logging(*, json_output: bool = True, log_level: str = "INFO") -> None:
    """Configure structlog.

    Args:
        json_output: One JSON object per line (tracebacks as structured dicts)
            when True, colored console output otherwise.
        log_level: Minimum level name; unknown names raise ValueError.
    """
    level = _LEVELS.get(log_level.upper())
    if level is None:
        raise ValueError(f"Unknown log level: {log_level}")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            *_renderer_chain(json_output),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def bound_request(**fields: object) -> Iterator[None]:
    tokens = structlog.contextvars.bind_contextvars(**fields)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
