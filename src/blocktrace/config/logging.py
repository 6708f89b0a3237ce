"""Logging configuration using structlog.

Debug mode renders colored console output; otherwise every event is a
single JSON line carrying the application name and network.
"""

import logging
import sys

import structlog

from blocktrace.config.settings import Settings, get_settings

# Noisy third-party loggers kept at WARNING outside debug mode
_QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog and the standard library root logger.

    Args:
        settings: Settings to read level and mode from. Defaults to the
            cached application settings.
    """
    settings = settings or get_settings()
    log_level = getattr(logging, settings.log_level)

    renderer: structlog.typing.Processor = (
        structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(app=settings.app_name, network=settings.network)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(log_level if settings.debug else logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
