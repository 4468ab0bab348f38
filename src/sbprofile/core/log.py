"""Logging setup for the sbprofile CLI: console or JSON lines on stderr."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

from sbprofile.core.config import LoggingConfig

_ROOT = "sbprofile"

# Applied to records from plain ``logging.getLogger(__name__)`` loggers.
_PRE_CHAIN = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def _formatter(fmt: str) -> structlog.stdlib.ProcessorFormatter:
    if fmt == "json":
        processors = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    else:
        processors = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(colors=False),
        ]
    return structlog.stdlib.ProcessorFormatter(processors=processors, foreign_pre_chain=_PRE_CHAIN)


def configure_logging(config: LoggingConfig, stream: TextIO | None = None) -> logging.Logger:
    """Install a single handler on the ``sbprofile`` logger; safe to call repeatedly."""
    logger = logging.getLogger(_ROOT)
    for handler in list(logger.handlers):
        if getattr(handler, "_sbprofile", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler._sbprofile = True  # type: ignore[attr-defined]
    handler.setFormatter(_formatter(config.format))
    logger.addHandler(handler)
    logger.setLevel(config.level)
    return logger
