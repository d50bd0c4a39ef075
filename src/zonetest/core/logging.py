# src/zonetest/core/logging.py
"""Structured logging for the job store.

Every record, whether it comes from a zonetest module through structlog or
from SQLAlchemy and Alembic through the stdlib logging module, is rendered by
the same structlog ProcessorFormatter, as JSON lines or as console output.
Output goes to stderr so command output on stdout stays machine-readable.

Job-scoped code runs inside job_context(), which binds the job identity into
structlog's context variables; every line logged meanwhile, including the
ones from helpers that never see the identity, carries it.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from structlog.stdlib import ProcessorFormatter

if TYPE_CHECKING:
    from zonetest.core.config import LoggingSettings

# Libraries that log every statement or revision at DEBUG.
# Kept at WARNING even when zonetest itself runs at DEBUG.
_NOISY_LOGGERS: tuple[str, ...] = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "alembic.runtime.migration",
)


def _drop_formatter_bookkeeping(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Remove the _record/_from_structlog keys ProcessorFormatter always adds."""
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def configure_logging(
    settings: "LoggingSettings | None" = None,
    *,
    json_output: bool | None = None,
    level: str | None = None,
) -> None:
    """Configure structlog and stdlib logging.

    Safe to call again; the CLI configures once at start-up and again after
    the settings file has been read.

    Args:
        settings: The logging section of ZonetestSettings (defaults when None)
        json_output: Overrides settings.json_output when given
        level: Overrides settings.level when given
    """
    if settings is not None:
        json_output = settings.json_output if json_output is None else json_output
        level = level or settings.level
    json_output = bool(json_output)
    log_level = getattr(logging, (level or "INFO").upper())

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]

    stream = sys.stderr
    if json_output:
        final_processors: list[Any] = [
            _drop_formatter_bookkeeping,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    else:
        final_processors = [
            _drop_formatter_bookkeeping,
            structlog.dev.ConsoleRenderer(colors=stream.isatty()),
        ]

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Reconfiguration must reach loggers created at import time
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(ProcessorFormatter(processors=final_processors, foreign_pre_chain=shared_processors))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    noisy_level = max(log_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(noisy_level)


@contextmanager
def job_context(identity: str, **fields: Any) -> Iterator[None]:
    """Tag every record logged inside the block with the job identity.

    The previous bindings are restored on exit.
    """
    with structlog.contextvars.bound_contextvars(identity=identity, **fields):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger for a module (name is usually __name__)."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
