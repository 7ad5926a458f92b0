"""Structured logging setup."""

import logging
import sys
from typing import Optional

import structlog

from .settings import config_settings


def setup_logging(level: Optional[str] = None, json_format: Optional[bool] = None) -> None:
    """Configure structlog on top of the standard library logging module.

    Args:
        level: Logging level name; defaults to ``LOG_LEVEL``.
        json_format: Render JSON lines instead of the console format; defaults to ``LOG_JSON``.
    """
    level = level or config_settings.LOG_LEVEL
    if json_format is None:
        json_format = config_settings.LOG_JSON

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    logging.getLogger().setLevel(numeric_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
