"""
Structured logging setup.

All modules log through ``structlog.get_logger(__name__)`` with snake_case
event names; this wires structlog onto stdlib logging once at startup.
"""

import logging
import sys

import structlog

from decisioncore.config import settings


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog + stdlib logging for the process."""
    level_name = (level or settings.log_level).upper()
    render_json = (fmt or settings.log_format).lower() == "json"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
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
            structlog.processors.JSONRenderer() if render_json
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
