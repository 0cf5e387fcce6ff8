"""Process-wide loguru sink setup."""
from __future__ import annotations

import sys

from loguru import logger

from hare.app.config.settings import Settings

LOG_FORMAT = "[{time:YYYY-MM-DD[T]HH:mm:ssZ} {level} {name}] {message} {extra}"


def configure_logging(settings: Settings) -> None:
    """Route all records to stdout or to HARE_LOG_DESTINATION.

    Raises if the destination cannot be opened; callers treat that as fatal.
    """
    logger.remove()
    if settings.log_destination:
        logger.add(
            settings.log_destination,
            level=settings.log_level,
            format=LOG_FORMAT,
            catch=False,
        )
    else:
        logger.add(sys.stdout, level=settings.log_level, format=LOG_FORMAT, catch=False)
