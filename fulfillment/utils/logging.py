"""Structured Logging Configuration.

Wires stdlib logging and structlog so every module can log with
``structlog.get_logger(__name__)`` and event-name-first keyword arguments.

Configuration:
- JSON output in production/staging (for log aggregation)
- Console renderer in development
- Context binding support (correlation IDs, order IDs) via contextvars
"""

import logging
import os
import sys
from typing import Any

import structlog


def get_log_level() -> str:
    """Get log level from LOG_LEVEL, falling back to a per-environment default."""
    env = os.getenv("ENVIRONMENT", "development").lower()
    level_map = {
        "production": "INFO",
        "staging": "INFO",
        "development": "DEBUG",
        "test": "WARNING",
    }
    return os.getenv("LOG_LEVEL", level_map.get(env, "INFO")).upper()


def get_logger(name: str) -> Any:
    """Get a structlog logger for the given module.

    Args:
        name: Module name (typically __name__)
    """
    return structlog.get_logger(name)


def configure_logging() -> None:
    """Configure stdlib logging and structlog for the process.

    Safe to call more than once; handlers on the root logger are replaced.
    """
    log_level = get_log_level()
    env = os.getenv("ENVIRONMENT", "development").lower()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if env in ("production", "staging"):
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_context(**kwargs: Any) -> None:
    """Bind context variables included in all subsequent log lines of this task."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()
