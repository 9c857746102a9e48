"""
Structured logging for Threshold.

Both stdlib loggers (`logging.getLogger(__name__)`, used by the services)
and structlog loggers (used by the engine facade for decision events) are
rendered by one structlog formatter, so every line carries the same keys:
timestamp, level, logger, plus any decision context bound for the current
call.

Usage:
    from src.lib.logging import decision_context, setup_logging

    setup_logging()  # once, at start-up

    with decision_context(session_id="s-1", target_app="com.example.feed"):
        ...  # every log line in here carries session_id and target_app
"""

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access", "httpx")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging(level: str | None = None, dev_mode: bool | None = None) -> None:
    """
    Configure structlog and the root stdlib logger.

    Args:
        level: Log level name (defaults to LOG_LEVEL, then INFO; unknown
            names fall back to INFO)
        dev_mode: Console rendering instead of JSON (defaults to
            THRESHOLD_DEV_MODE=1)
    """
    if dev_mode is None:
        dev_mode = os.environ.get("THRESHOLD_DEV_MODE") == "1"
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()

    shared = _shared_processors()
    renderer = structlog.dev.ConsoleRenderer() if dev_mode else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # foreign_pre_chain gives stdlib records the same keys as structlog events
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def decision_context(**values: object) -> Iterator[None]:
    """Bind key/values to every log line emitted inside the block."""
    with structlog.contextvars.bound_contextvars(**values):
        yield
