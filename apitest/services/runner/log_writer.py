"""Level-filtered logging sink used by the runner."""

import logging
import sys
from typing import TextIO

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
}


def new_level_logger(level: str, stream: TextIO | None = None, name: str = "apitest.runner") -> logging.Logger:
    """
    Create a logger that writes plain messages to ``stream``.

    The logger is not registered with the logging manager, so every runner
    owns its own sink and threshold.

    Args:
        level: "info" or "debug"; anything else falls back to info
        stream: Output stream, stdout when omitted
        name: Logger name shown to formatters

    Returns:
        A non-propagating logger with a single stream handler
    """
    logger = logging.Logger(name, LEVELS.get((level or "").lower(), logging.INFO))
    logger.propagate = False

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    return logger


def discard_logger(name: str = "apitest.runner") -> logging.Logger:
    """Logger that drops everything."""
    logger = logging.Logger(name)
    logger.propagate = False
    logger.addHandler(logging.NullHandler())
    return logger
