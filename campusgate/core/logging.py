"""
structlog setup, run once from the application lifespan.

Every entry carries the service name, environment and admission strategy,
so logs from several workers can be told apart when a ledger race is being
traced. Per-request fields (request_id, method, path) come from contextvars
bound by the request middleware. JSON in production, console otherwise.
"""

import logging
import sys

import structlog

from campusgate.core.config import get_settings

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "aiosqlite", "asyncio")


def _service_context(settings):
    static = {
        "service": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
        "admission_strategy": settings.ADMISSION_STRATEGY,
    }

    def add_service_context(logger, method_name, event_dict):
        for key, value in static.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_service_context


def setup_logging() -> None:
    settings = get_settings()
    level = logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        _service_context(settings),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.ENVIRONMENT == "production":
        processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    ))

    # Idempotent across repeated startups
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
