"""
Structured logging for the DSPR dashboard using structlog.

The HTTP middleware binds request_id and report fetches bind the store/date
key through structlog contextvars, so every event logged while a report is
fetched and derived carries them.
"""

import logging
import sys
from typing import Any, List

import structlog
from structlog.types import EventDict, Processor

from dspr import __version__
from dspr.config import get_settings

APP_NAME = "dspr-dashboard"


def add_severity(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add severity level for log aggregators that key on it."""
    event_dict["severity"] = method_name.upper()
    return event_dict


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("app", APP_NAME)
    event_dict.setdefault("app_version", __version__)
    return event_dict


def build_processors(json_output: bool, colors: bool = True) -> List[Processor]:
    """Processor chain ending in a JSON or console renderer."""
    renderer: Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=colors)

    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_severity,
        add_app_context,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ]


def configure_logging() -> None:
    """
    Configure stdlib logging and structlog from settings.
    JSON in production; console when log_format is "console" or dev_mode is on.
    """
    settings = get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=build_processors(
            json_output=settings.log_format == "json" and not settings.dev_mode,
            colors=not settings.testing,
        ),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def bind_report_context(store_id: str, business_date: str) -> None:
    """Attach the report key to every event logged in the current context."""
    structlog.contextvars.bind_contextvars(store_id=store_id, business_date=business_date)


def log_event(
    logger: structlog.BoundLogger,
    level: str,
    event: str,
    **kwargs: Any,
) -> None:
    """
    Log an event at a level chosen at runtime.

    Args:
        logger: Structlog logger instance
        level: Log level name (info, warning, error)
        event: Snake_case event name
        **kwargs: Event context
    """
    log_func = getattr(logger, level.lower(), logger.info)
    log_func(event, **kwargs)
