"""
Logging setup for bricksync.

All modules log under the ``bricksync`` namespace. The CLI routes records
through a Rich handler bound to its own console so log lines and transfer
progress bars share one output stream.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler


LOGGER_NAME = "bricksync"

LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return LEVEL_MAP.get(str(level).strip().upper(), logging.INFO)


def setup_logging(level: str | int = logging.INFO, console: Console | None = None) -> logging.Logger:
    """Attach a single Rich handler to the ``bricksync`` logger.

    Safe to call more than once; earlier handlers installed here are replaced.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()

    level_int = _parse_level(level)
    logger.setLevel(level_int)

    handler = RichHandler(
        level=level_int,
        console=console,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        log_time_format="[%X]",
    )
    logger.addHandler(handler)
    return logger


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    if name != LOGGER_NAME and not name.startswith(f"{LOGGER_NAME}."):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)
