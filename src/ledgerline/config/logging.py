"""Structured logging for Ledgerline commands and library code."""

import logging
import sys
from typing import Any, Literal, TextIO

import structlog

from ledgerline.config.settings import get_settings

# Event keys whose values never reach the log output
REDACTED_KEYS = frozenset({"password", "token", "api_token", "authorization"})

# Chatty third-party loggers held at WARNING unless running at DEBUG
_QUIET_LOGGERS = ("httpx", "httpcore")


def redact_credentials(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Mask credential values bound into an event."""
    for key in REDACTED_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None,
    format: Literal["json", "console"] | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure structured logging.

    Args:
        level: Log level. Defaults to ``LOG_LEVEL``.
        format: ``json`` or ``console``. Defaults to ``LOG_FORMAT``.
        stream: Destination, stderr by default so exports written to
            stdout stay clean.
    """
    settings = get_settings()
    log_level = level or settings.log_level
    log_format = format or settings.log_format
    stream = stream or sys.stderr

    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=getattr(logging, log_level),
    )
    quiet_level = logging.DEBUG if log_level == "DEBUG" else logging.WARNING
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=stream.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_credentials,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Logger bound to ``name``, usually the caller's ``__name__``."""
    return structlog.get_logger(name)
