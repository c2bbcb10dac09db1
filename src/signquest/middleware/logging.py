"""Structured logging: structlog and stdlib records share one renderer.

Every record is stamped with the service name, version and environment so
that API and worker output can be told apart once shipped.
"""

import logging

import structlog

from signquest.config import Settings

SERVICE_NAME = "signquest"

# Chatty libraries held above the configured level.
QUIET_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "arq.worker": logging.INFO,
    "httpx": logging.WARNING,
}


def service_fields(settings: Settings) -> structlog.types.Processor:
    """Processor adding service metadata without overwriting fields set by the caller."""
    fields = {
        "service": SERVICE_NAME,
        "version": settings.app_version,
        "environment": settings.environment,
    }

    def add_fields(_logger: object, _method: str, event_dict: dict) -> dict:
        for key, value in fields.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_fields


def setup_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )
    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        service_fields(settings),
    ]

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Service modules log through stdlib; route them through the same chain.
    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name, floor in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(floor, level))
