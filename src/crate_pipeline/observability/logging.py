"""
crate-pipeline — structured logging setup.

File: src/crate_pipeline/observability/logging.py

Purpose
- Configure structlog once per process so every component's
  ``structlog.get_logger(__name__)`` writes event-style records to stderr.

Functional requirements
- stdout stays reserved for command output (YAML, JSON, reports).
- ``console`` renders human-readable lines; ``json`` renders one object per line.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Final

import structlog

from crate_pipeline.config.schema import LOG_FORMATS, LOG_LEVELS

DEFAULT_LOG_LEVEL: Final[str] = "INFO"
DEFAULT_LOG_FORMAT: Final[str] = "console"


def configure_logging(
    level: str = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    *,
    stream: IO[str] | None = None,
) -> None:
    normalized_level = level.upper()
    if normalized_level not in LOG_LEVELS:
        raise ValueError(f"unknown log level {level!r}")
    if log_format not in LOG_FORMATS:
        raise ValueError(f"unknown log format {log_format!r}")

    output = stream if stream is not None else sys.stderr
    renderer: structlog.typing.Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=output.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(normalized_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=False,
    )


__all__ = ["DEFAULT_LOG_FORMAT", "DEFAULT_LOG_LEVEL", "configure_logging"]
