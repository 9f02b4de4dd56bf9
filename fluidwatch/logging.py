"""
Structured logging setup.

Configures structlog on top of the standard logging module so that
library loggers (uvicorn, asyncpg, aiohttp) and application loggers share
the same output. JSON is the production format; TEXT renders key/value
pairs for local development.

Example:
    >>> from fluidwatch.logging import setup_logging
    >>> setup_logging("DEBUG", "text")
    >>> structlog.get_logger(__name__).info("measurement_saved", meter_id="m-1")
"""

import logging
import sys
from typing import Union

import structlog

from fluidwatch.config.models import LogFormat, LogLevel


def setup_logging(
    level: Union[LogLevel, str] = LogLevel.INFO,
    log_format: Union[LogFormat, str] = LogFormat.JSON,
) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        level: Minimum level to emit.
        log_format: "json" for machine readable lines, "text" for a console renderer.
    """
    level_name = LogLevel(str(getattr(level, "value", level)).upper()).value
    fmt = LogFormat(str(getattr(log_format, "value", log_format)).lower())

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == LogFormat.JSON
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name),
        force=True,
    )

    # Reduce noise from uvicorn access logs
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
