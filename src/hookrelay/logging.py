"""Logging setup for HookRelay.

structlog events and records from plain stdlib loggers (the delivery
engine, storage retries, the API router) go through one
``ProcessorFormatter``, so every line has the same shape and carries the
fields bound with :func:`log_context`. A fan-out binds the organization
and event, each subscriber task adds its webhook, and each attempt adds
its delivery and chain ids.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from structlog.typing import Processor

# Per-request INFO lines from these duplicate the delivery logs
QUIET_LOGGERS = ("httpx", "httpcore")

_handler: logging.Handler | None = None


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def configure_logging(level: str = "INFO", format: str = "json") -> None:
    """Route structlog and stdlib logging to stdout.

    Safe to call more than once; the previous HookRelay handler is
    replaced, handlers installed by others are left alone.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        format: "json" for one JSON object per line, "text" for console output.

    Example:
        ```python
        configure_logging(level="DEBUG", format="text")
        get_logger(__name__).info("Relay started", retry_mode="inline")
        ```
    """
    global _handler

    log_level = getattr(logging, level.upper(), logging.INFO)

    if format.lower() == "json":
        renderers: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_processors(),
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
        )
    )

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    root.addHandler(handler)
    root.setLevel(log_level)
    _handler = handler

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, configuring defaults on first use."""
    if _handler is None:
        configure_logging()
    return structlog.get_logger(name)  # type: ignore[no-any-return]


@contextmanager
def log_context(**fields: object) -> Iterator[None]:
    """Attach fields to every log line emitted inside the block.

    Fields set to None are skipped. Tasks started inside the block
    inherit the fields; values bound by an outer block are restored on exit.
    """
    with structlog.contextvars.bound_contextvars(
        **{key: value for key, value in fields.items() if value is not None}
    ):
        yield
