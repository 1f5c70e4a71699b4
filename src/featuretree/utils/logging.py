"""Structured logging configuration using structlog."""

from __future__ import annotations

import logging
import sys

import structlog


def _stderr_logger(*args: object) -> structlog.PrintLogger:
    # Looked up per logger so a replaced sys.stderr is honored
    return structlog.PrintLogger(file=sys.stderr)


def _configure_structlog(log_level: int, json_output: bool) -> None:
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors: list[structlog.types.Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def configure_logging(
    level: str = "WARNING",
    json_output: bool = False,
) -> None:
    """
    Configure structured logging for featuretree.

    Logs go to stderr so they never mix with listing output on stdout.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, render log lines as JSON.
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
    )

    _configure_structlog(log_level, json_output)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger bound to the given module name."""
    return structlog.get_logger(name)


# Library use: warnings to stderr until the host application configures structlog
if not structlog.is_configured():
    _configure_structlog(logging.WARNING, json_output=False)
