"""
Logging configuration for the gateway.

The library only emits events through structlog; applications call
``configure_logging()`` once at startup to render them (JSON in production,
colorful in dev) together with SQLAlchemy's own stdlib loggers.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from asgi_correlation_id import correlation_id

from dbgateway.config import get_settings

SQL_LOGGER = "sqlalchemy.engine"


def add_correlation_id(logger, method_name, event_dict):
    """Attach the current request id when the gateway runs inside an ASGI request."""
    request_id = correlation_id.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def configure_logging(level: Optional[str] = None) -> None:
    """Route structlog and stdlib records through one handler on the root logger.

    ``level`` overrides ``LOG_LEVEL``. With ``SQL_ECHO`` set, emitted SQL is
    logged at INFO by the ``sqlalchemy.engine`` logger instead of the engine's
    own echo handler, so statements carry the same processors as gateway
    events.
    """
    settings = get_settings()

    shared_processors: list[Any] = [
        add_correlation_id,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.ENVIRONMENT == "production":
        # JSON for log shippers; exceptions flattened into the event
        renderer = structlog.processors.JSONRenderer()
        tail = [structlog.processors.format_exc_info]
    else:
        renderer = structlog.dev.ConsoleRenderer()
        tail = []

    structlog.configure(
        processors=shared_processors + tail + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors + tail,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)
    root_logger.setLevel((level or settings.LOG_LEVEL).upper())

    logging.getLogger(SQL_LOGGER).setLevel(logging.INFO if settings.SQL_ECHO else logging.WARNING)
