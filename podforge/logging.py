"""Structured logging for podforge.

Log lines go to stderr through structlog on top of stdlib logging. Values
bound with :func:`bind_run_context` (the batch run id, for example) are
attached to every event logged until :func:`clear_run_context` is called.
"""

import logging
import sys
from typing import Any, Dict, Optional

import structlog
from structlog.typing import EventDict, Processor

from .config import PodforgeConfig, get_config

_LEVEL_NAMES: Dict[str, str] = {
    "debug": "DEBUG",
    "info": "INFO",
    "warn": "WARNING",
    "warning": "WARNING",
    "error": "ERROR",
    "exception": "ERROR",
    "critical": "CRITICAL",
}


def add_log_level(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add the upper-case level name of the logging call."""
    level = _LEVEL_NAMES.get(method_name)
    if level:
        event_dict["level"] = level
    return event_dict


def _renderers(log_format: str) -> list:
    if log_format == "json":
        return [
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ]
    return [
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
    ]


def setup_logging(config: Optional[PodforgeConfig] = None) -> None:
    """Configure structlog and the stdlib root logger from ``config``."""
    config = config or get_config()

    # stdout is reserved for the batch report and --json output
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, config.log_level),
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    processors.extend(_renderers(config.log_format))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_run_context(**values: Any) -> None:
    """Attach ``values`` to every subsequent log event in this context."""
    structlog.contextvars.bind_contextvars(**values)


def clear_run_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = "podforge") -> structlog.stdlib.BoundLogger:
    """Get a logger named after the calling module."""
    return structlog.get_logger(name)
