"""
structlog setup.

Modules log through ``structlog.get_logger()`` with snake_case event names
and key/value context.  The Textual shell owns the terminal, so in UI mode
logs go to a file; headless CLI commands log to stderr.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

import structlog

_log_stream: TextIO | None = None


def configure_logging(level: str = "INFO", log_file: Path | None = None) -> None:
    """Configure structlog for the process.

    Safe to call more than once; a previously opened log file is closed.
    """
    global _log_stream

    if _log_stream is not None:
        _log_stream.close()
        _log_stream = None

    if log_file is not None:
        log_file.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        _log_stream = log_file.open("a", encoding="utf-8")
        stream: TextIO = _log_stream
        renderer: structlog.types.Processor = structlog.processors.KeyValueRenderer(
            key_order=["timestamp", "level", "event"], drop_missing=True
        )
    else:
        stream = sys.stderr
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )
