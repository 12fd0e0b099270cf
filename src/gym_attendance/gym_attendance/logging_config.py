from __future__ import annotations

import logging
import os
import sys
from typing import Optional

NO_COLOR = os.getenv("NO_COLOR") is not None

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class _C:
    RESET = "\033[0m"
    DIM = "\033[2m"
    YELLOW = "\033[33m"
    RED = "\033[31m"


LEVEL_COLORS = {
    logging.DEBUG: _C.DIM,
    logging.WARNING: _C.YELLOW,
    logging.ERROR: _C.RED,
    logging.CRITICAL: _C.RED,
}


class ColorFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if NO_COLOR:
            return line
        color = LEVEL_COLORS.get(record.levelno)
        return f"{color}{line}{_C.RESET}" if color else line


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Install console (and optional file) handlers on the package logger.

    Safe to call more than once: previously installed handlers are replaced.
    """
    pkg_logger = logging.getLogger(__name__.rsplit(".", 1)[0])
    pkg_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    for handler in list(pkg_logger.handlers):
        pkg_logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(ColorFormatter(_FORMAT, _DATEFMT))
    pkg_logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_FORMAT, _DATEFMT))
        pkg_logger.addHandler(file_handler)

    return pkg_logger
