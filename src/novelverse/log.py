"""Logging setup.

Modules log through ``logging.getLogger(__name__)``; the CLI calls
setup_logging() once to route the ``novelverse`` logger through Rich.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "novelverse"


def setup_logging(level: str = "WARNING", console: Optional[Console] = None) -> logging.Logger:
    """Configure the package logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)
        console: Rich console to write to (stderr if not provided)

    Returns:
        The configured ``novelverse`` logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    # Replace handlers so repeated calls don't duplicate output
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False

    return logger
