"""Logging setup for applications embedding routekit."""

import logging
from typing import Optional

from routekit.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Install a single stream handler on the root logger.

    Args:
        level: Log level name, defaults to ``settings.LOG_LEVEL``
    """
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())

    for handler in root.handlers:
        if getattr(handler, "_routekit", False):
            return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._routekit = True
    root.addHandler(handler)
