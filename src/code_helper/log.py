# log.py
# structlog logger factory. Diagnostic events only; user-facing output
# belongs to display.py.

import logging
import sys
from typing import Any

import structlog


def get_logger(component: str) -> Any:
    """Logger bound to a component name (e.g. "llm", "analysis")."""
    return structlog.get_logger().bind(component=component)


def configure(verbose: bool = False) -> None:
    """Filter diagnostics to WARNING, or DEBUG when verbose. Writes to stderr."""
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
