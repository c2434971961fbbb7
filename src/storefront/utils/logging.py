"""Logging for the storefront.

Everything goes to stdout through stdlib logging. structlog renders JSON in
production and staging, where the gateway audit trail is shipped to a log
collector, and a coloured console log with rich tracebacks elsewhere.
Request handlers bind `method` and `path` with `bind_request`; the lifecycle
coordinator binds provider and event ids on its own logger.
"""

import logging
import os
import sys

import structlog

from storefront import settings

_DEFAULT_LEVELS = {"production": "INFO", "staging": "INFO", "test": "WARNING"}


def log_level() -> str:
    """`LOG_LEVEL` wins; otherwise the level for `PROTEAN_ENV`, DEBUG in development."""
    return os.getenv("LOG_LEVEL", _DEFAULT_LEVELS.get(settings.environment(), "DEBUG")).upper()


def configure_logging() -> None:
    level = log_level()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]
    # Protean logs every unit of work at INFO
    logging.getLogger("protean").setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if settings.environment() in ("production", "staging"):
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.RichTracebackFormatter(max_frames=2),
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_request(method: str, path: str) -> None:
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(method=method, path=path)
