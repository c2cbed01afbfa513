"""
Structured logging setup.

Every module logs through ``structlog.get_logger(__name__)``; this module
wires structlog onto the standard library once per process.
"""

import logging
import sys

import structlog

from forecast_scoring.config.settings import AppSettings, get_settings

_configured = False


def configure_logging(app_settings: AppSettings | None = None, *, force: bool = False) -> None:
    """
    Configure structlog and the root stdlib logger.

    Args:
        app_settings: Application settings (defaults to the global settings)
        force: Reconfigure even if logging was already set up
    """
    global _configured

    if _configured and not force:
        return

    app_settings = app_settings or get_settings().app
    level = getattr(logging, app_settings.log_level)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
        force=True,
    )

    renderer: structlog.types.Processor
    if app_settings.json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=app_settings.environment == "development")

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

    _configured = True
