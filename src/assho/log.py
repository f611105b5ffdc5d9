"""Logging setup for the CLI."""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVEL_ENV = "ASSHO_LOG_LEVEL"


def configure_logging(verbose: bool = False) -> None:
    """Send assho logs to stderr through rich.

    The level comes from ASSHO_LOG_LEVEL (default WARNING); verbose forces
    DEBUG.
    """
    level_name = "DEBUG" if verbose else os.getenv(LOG_LEVEL_ENV, "WARNING").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING

    handler = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger("assho")
    logger.handlers[:] = [handler]
    logger.setLevel(level)
    logger.propagate = False
