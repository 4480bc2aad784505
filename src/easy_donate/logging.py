"""Logging bootstrap utilities."""

from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any

from .config import LogLevel, get_settings

# request-level chatter from the storage and HTTP client stacks
NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "httpx", "httpcore")
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def configure_logging(level: LogLevel | str | None = None) -> None:
    """Route application, server and library logs to stderr.

    Libraries in ``NOISY_LOGGERS`` never log below WARNING, whatever the
    application level is.
    """

    resolved = level or get_settings().log_level
    resolved_level = (resolved.value if isinstance(resolved, LogLevel) else resolved).upper()
    library_level = max(logging.getLevelName(resolved_level), logging.WARNING)

    def logger_config(logger_level: str | int) -> dict[str, Any]:
        return {"handlers": ["stderr"], "level": logger_level, "propagate": False}

    loggers = {"": logger_config(resolved_level)}
    loggers.update({name: logger_config(resolved_level) for name in SERVER_LOGGERS})
    loggers.update({name: logger_config(library_level) for name in NOISY_LOGGERS})

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                }
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": resolved_level,
                }
            },
            "loggers": loggers,
        }
    )

    logging.getLogger(__name__).debug("Logging configured", extra={"level": resolved_level})
