"""Structured logging setup for the placeholder engine.

Engine modules log through module-level ``structlog.get_logger()`` loggers;
this module decides where those events go and how they are rendered.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Optional

import structlog


def build_processors(json_format: bool = False, include_timestamp: bool = True) -> list:
    """Processor chain for configure_logging, renderer last."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
    ]
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))
    processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    include_timestamp: bool = True,
) -> None:
    """Route engine log events through stdlib logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Render events as JSON lines
        include_timestamp: Add an ISO ``timestamp`` field to each event
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )

    structlog.configure(
        processors=build_processors(json_format, include_timestamp),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_settings(settings: Any) -> None:
    """Configure logging from EngineSettings (log_level, log_json)."""
    configure_logging(level=settings.log_level, json_format=settings.log_json)


@contextmanager
def log_operation(
    operation: str,
    logger: Optional[structlog.BoundLogger] = None,
    **context,
):
    """Log the start and the outcome of a bulk operation.

    Yields a dict the caller can add results to; ``success`` and ``error``
    are filled in on exit and logged with the completion event.

    Example:
        with log_operation("load_persisted_cache", cache_dir=".cache") as op:
            op["loaded"] = load_entries()
    """
    log = (logger or structlog.get_logger()).bind(operation=operation, **context)

    log.info(f"{operation} started")
    result = {"success": False, "error": None}

    try:
        yield result
        result["success"] = True
        log.info(f"{operation} completed", **result)
    except Exception as e:
        result["error"] = str(e)
        log.error(f"{operation} failed", **result)
        raise
