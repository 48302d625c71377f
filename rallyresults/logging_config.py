from __future__ import annotations

import logging
import os
import re
import sys


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

_CTRL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")


def _sanitize_text(text: str) -> str:
    """Remove control characters (incl. NUL) except common whitespace."""
    return _CTRL_RE.sub("", text)


class PlainFormatter(logging.Formatter):
    def __init__(self, datefmt: str = "%Y-%m-%d %H:%M:%S") -> None:
        super().__init__("[{asctime}] [{levelname:<8}] {name}: {message}", datefmt=datefmt, style="{")

    def format(self, record: logging.LogRecord) -> str:
        # Rally exports are user supplied, so names and comments can carry junk bytes.
        return _sanitize_text(super().format(record))


def configure_logging(level: str | int | None = None, name: str = "rallyresults") -> logging.Logger:
    """
    Attach a stderr handler to the package logger once.
    Later calls only change the level when one is passed.
    """
    logger = logging.getLogger(name)
    if level:
        logger.setLevel(level)
    if logger.handlers:
        return logger

    if not level:
        logger.setLevel(LOG_LEVEL)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(PlainFormatter())
    logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
