"""structlog configuration.

Learn: Every module does `logger = structlog.get_logger()` and logs dotted
event names with keyword context (`logger.info("entry.created", entry_id=...)`).
This module wires the processor chain once at startup:
contextvars (request_id, user_id bound by middleware/auth) → level →
timestamp → renderer (JSON in production, pretty console in development).
"""

import logging

import structlog


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog for the whole process. Safe to call repeatedly."""
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        cache_logger_on_first_use=False,
    )
