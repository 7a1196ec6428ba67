"""Structured logging setup.

Services log through structlog bound loggers; core modules use the standard
library logger. Both go through the same processor chain: stdlib records
reach it via a structlog ProcessorFormatter on the root handler, with any
``extra=`` fields carried into the event.
"""

import logging
import sys

import structlog

from baseapp.core.config import settings

# Name of the root handler installed by configure_logging()
HANDLER_NAME = "baseapp"


def configure_logging(level: str | None = None) -> None:
    """Configure structlog and the root stdlib logger.

    Development gets the colourised console renderer, every other
    environment emits one JSON object per line with tracebacks rendered
    into the ``exception`` field.

    Calling it again replaces the previous configuration.

    Args:
        level: Log level name. Defaults to settings.log_level.
    """
    level_name = (level or settings.log_level).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
    ]

    # ConsoleRenderer formats exc_info itself
    rendering: list[structlog.types.Processor]
    if settings.environment == "development":
        rendering = [structlog.dev.ConsoleRenderer()]
    else:
        rendering = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=[*shared_processors, *rendering],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[*shared_processors, structlog.stdlib.ExtraAdder()],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *rendering,
            ],
        )
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(numeric_level)
