"""Logging setup for the service entry points."""

import logging
from typing import Optional

from household_calendar.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging.

    Args:
        level: Level name to apply (defaults to settings.log_level)
    """
    level = level or get_settings().log_level
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger(__name__).debug(f"Logging configured at {level}")
