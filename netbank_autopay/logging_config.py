"""structlog configuration.

Components never look loggers up by themselves: the entry point builds one
per component with ``get_logger()`` and hands it over through the
constructor.
"""

import logging
import sys

import structlog


def configure_logging(level: str = "INFO", fmt: str = "console") -> None:
    """Configure structlog for JSON or console output."""
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        # stdout is reserved for command output.
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        cache_logger_on_first_use=True,
    )


def get_logger(namespace: str, **context) -> structlog.typing.FilteringBoundLogger:
    """Return a logger bound to ``namespace`` and any extra context."""
    return structlog.get_logger("netbank_autopay").bind(namespace=namespace, **context)
