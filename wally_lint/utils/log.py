"""Logging setup for the command line."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "wally_lint"

LEVELS = {
    "quiet": logging.WARNING,
    "normal": logging.INFO,
    "verbose": logging.DEBUG,
}


def configure_logging(level: str = "normal", console: Console | None = None) -> logging.Logger:
    """Attach a single rich handler to the package logger.

    Unknown level names fall back to ``normal``. Calling this again replaces
    the handler instead of stacking a second one.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(LEVELS.get(level, logging.INFO))

    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
