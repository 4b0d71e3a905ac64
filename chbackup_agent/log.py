# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Logging setup for the command-line entry point.

Log events go to stderr so that stdout carries only engine output.
"""

import logging
import sys

import structlog


class StderrLoggerFactory:
    """Create loggers bound to whatever ``sys.stderr`` is at call time."""

    def __call__(self, *args) -> structlog.PrintLogger:
        return structlog.PrintLogger(sys.stderr)


def configure_logging(level: str = "info") -> None:
    """Configure structlog for console output at ``level``."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        logger_factory=StderrLoggerFactory(),
        cache_logger_on_first_use=False,
    )
