"""
Logging Configuration

Configures structlog for the registrar. Modules only ever call
``structlog.get_logger(__name__)``; this module decides how the events render.
"""

import logging

import structlog

from shared.config import Settings, get_settings

_configured = False


def configure_logging(app_settings: Settings | None = None, force: bool = False) -> None:
    """
    Configure structlog processors and output format.

    Args:
        app_settings: Settings to read log level and format from (defaults to cached settings)
        force: Reconfigure even if logging was already configured
    """
    global _configured

    if _configured and not force:
        return

    app_settings = app_settings or get_settings()
    level = logging.getLevelName(app_settings.log_level)

    if app_settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )

    _configured = True
