"""structlog configuration for applications embedding the client."""

import logging
import os

import structlog


def configure_logging(production: bool | None = None) -> None:
    """Configure structlog.

    Args:
        production: JSON output at INFO when True, console output at DEBUG
            when False. Defaults to the ``ENV`` environment variable.
    """
    if production is None:
        production = os.getenv("ENV", "development").lower() == "production"

    if production:
        # Production: JSON format for machine parsing
        renderer = structlog.processors.JSONRenderer()
        level = logging.INFO
    else:
        # Development: console format for human readability
        renderer = structlog.dev.ConsoleRenderer()
        level = logging.DEBUG

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
