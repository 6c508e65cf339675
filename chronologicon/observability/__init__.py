"""
Observability

Logging setup for the service. Modules log through
logging.getLogger(__name__); this installs the single handler under the
"chronologicon" logger namespace.
"""

from __future__ import annotations
from typing import Optional, Union
import logging
import os

LOGGER_NAME = "chronologicon"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def configure_logging(level: Optional[Union[int, str]] = None) -> logging.Logger:
    """
    Configure the package logger once.

    level defaults to CHRONO_LOG_LEVEL, then INFO. Calling again only
    updates the level.
    """
    if level is None:
        level = os.environ.get("CHRONO_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = level.upper()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    if logger.handlers:
        return logger  # Avoid adding duplicate handlers

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    return logger


__all__ = ["configure_logging", "LOGGER_NAME"]
