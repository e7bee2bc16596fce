"""
Logging for HistView.

Library modules only ever call ``get_logger(__name__)``. Scripts that want
console output call ``configure_logging()`` once, which attaches a coloured
stderr handler to the ``HistView`` logger (never the root logger).
"""

import logging
import os
import sys

from colorama import Fore, Style

from .config import LOG_LEVEL_ENV

DEFAULT_FMT = "[%(levelname)s] %(name)s: %(message)s"

LEVEL_COLORS = {
    logging.DEBUG: Fore.CYAN,
    logging.INFO: Fore.GREEN,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED + Style.BRIGHT,
    logging.CRITICAL: Fore.RED + Style.BRIGHT,
}


class ColorFormatter(logging.Formatter):
    """Wraps each record in the colour used for its level."""

    def format(self, record):
        message = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        if color is None:
            return message
        return f"{color}{message}{Style.RESET_ALL}"


def configure_logging(level=None, *, color: bool = True, fmt: str = None, force: bool = False) -> logging.Logger:
    """
    Attach a stderr handler to the HistView logger.

    level defaults to the HISTVIEW_LOG_LEVEL environment variable, or INFO.
    Without force, a second call keeps the handler that is already installed.
    """
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("HistView")
    logger.setLevel(level)

    if force:
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)
    else:
        for handler in logger.handlers:
            if isinstance(handler, logging.StreamHandler) and handler.stream is sys.stderr:
                return logger

    formatter_class = ColorFormatter if color else logging.Formatter

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(formatter_class(fmt=fmt or DEFAULT_FMT))
    logger.addHandler(console)

    return logger


def get_logger(name: str = None) -> logging.Logger:
    return logging.getLogger(name or "HistView")
