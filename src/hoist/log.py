"""Logging setup for the hoist command line.

Modules log through ``logging.getLogger(__name__)``; only the CLI attaches a
handler, driven by the ``log_level`` and ``log_format`` settings.
"""

import json
import logging
import sys
from typing import TextIO

from hoist.config import HoistSettings


LOGGER_NAME = "hoist"
TEXT_FORMAT = "%(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """Formats each record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


class _HoistHandler(logging.StreamHandler):
    """The handler installed by configure_logging; replaced on reconfiguration."""


def configure_logging(
    settings: HoistSettings,
    verbose: bool = False,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Attach a handler for the ``hoist`` logger.

    Calling this again replaces the handler it installed earlier; handlers
    added by anything else are left alone.

    Args:
        settings: Supplies ``log_level`` and ``log_format``.
        verbose: Force DEBUG regardless of ``log_level``.
        stream: Destination, stderr by default.

    Returns:
        logging.Logger: The configured ``hoist`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else settings.log_level)

    for handler in list(logger.handlers):
        if isinstance(handler, _HoistHandler):
            logger.removeHandler(handler)

    handler = _HoistHandler(stream or sys.stderr)
    if settings.log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    logger.addHandler(handler)
    return logger
