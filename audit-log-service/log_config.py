"""Structured logging setup for the audit log service."""

import logging

import structlog

import config


def configure_logging(level=None, fmt=None):
    """Configure structlog and the standard logging module it writes through."""
    level = level or config.LOG_LEVEL
    fmt = fmt or config.LOG_FORMAT

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


def get_logger(component):
    # resolved on first use, after configure_logging()
    return structlog.stdlib.get_logger(component=component)
