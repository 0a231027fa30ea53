"""structlog configuration for the monitr CLI."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

import structlog

_log_file: TextIO | None = None


def configure_logging(level: str = "INFO", file_path: str = "", json_output: bool = False) -> None:
    """Configure structlog level filtering, rendering and destination.

    Args:
        level: Minimum level name ("DEBUG" .. "CRITICAL")
        file_path: Append to this file instead of stderr when non-empty
        json_output: Render one JSON object per line instead of key=value
    """
    global _log_file

    if _log_file is not None:
        _log_file.close()
        _log_file = None

    if file_path:
        path = Path(file_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        _log_file = path.open("a", encoding="utf-8")
        logger_factory = structlog.WriteLoggerFactory(file=_log_file)
    else:
        logger_factory = structlog.PrintLoggerFactory(file=sys.stderr)

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.upper())),
        logger_factory=logger_factory,
        cache_logger_on_first_use=False,
    )
