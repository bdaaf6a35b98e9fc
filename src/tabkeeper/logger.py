"""
Logging setup built on loguru.

Modules obtain a logger with ``get_logger(__name__)``; the bound ``name``
shows up in every record so output stays attributable once several
components log concurrently.
"""

import sys
from typing import Optional

from loguru import logger

LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)

logger.configure(extra={"name": "tabkeeper"})


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Replace loguru's default sink with the tabkeeper format.

    Args:
        level: Minimum level for the stderr sink.
        log_file: Optional path for an additional rotating file sink.
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT)

    if log_file:
        logger.add(
            log_file,
            level=level.upper(),
            format=LOG_FORMAT,
            rotation="10 MB",
            retention=3,
            encoding="utf-8",
        )


def get_logger(name: str):
    """Return a loguru logger bound to the given module name."""
    return logger.bind(name=name)
