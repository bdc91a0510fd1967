"""
Structured Logging

Every module logs through structlog.get_logger(__name__). This module owns the
single structlog configuration; the composition root calls configure_logging()
once at startup.
"""

import logging
import sys
from typing import Optional

import structlog

from monthwise.config import LoggingSettings, get_settings


def configure_logging(settings: Optional[LoggingSettings] = None) -> None:
    """
    Configure stdlib logging and structlog.

    Args:
        settings: Logging settings. If None, loaded from the environment.
    """
    settings = settings or get_settings().logging

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.level),
    )
    logging.getLogger().setLevel(getattr(logging, settings.level))

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.json_output
        else structlog.dev.ConsoleRenderer()
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
