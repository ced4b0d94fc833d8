"""
Structured logging configuration.

CLI output goes to stdout, so log events are always written to stderr.
"""

from __future__ import annotations

import logging
import sys

import structlog

from scrummer.core.config import Settings, settings


def build_renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "console":
        return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    return structlog.processors.JSONRenderer(sort_keys=True)


def configure_logging(config: Settings | None = None) -> None:
    """Configure stdlib and structlog processors for the given settings."""
    active = config or settings
    level_value = logging.getLevelNamesMapping().get(
        active.effective_log_level.upper(),
        logging.INFO,
    )
    logging.basicConfig(
        level=level_value,
        format="%(message)s",
        stream=sys.stderr,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            build_renderer(active.LOG_FORMAT),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
