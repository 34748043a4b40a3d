"""structlog configuration for the command line."""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, TextIO

import structlog

LOG_ENV = "MIRRORDELTA_LOG"
DEFAULT_LEVEL = "info"


def configure_logging(
    log_level: str | None = None,
    json_logs: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Route structlog through stdlib logging on *stream* (default stderr).

    *log_level* falls back to ``$MIRRORDELTA_LOG``, then ``info``.
    """
    if log_level is None:
        log_level = os.environ.get(LOG_ENV) or DEFAULT_LEVEL
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    stream = stream if stream is not None else sys.stderr

    logging.basicConfig(format="%(message)s", level=numeric_level, stream=stream, force=True)

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=stream.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
