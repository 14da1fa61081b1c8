"""Logging setup for the identity registry.

The API lifespan and the bootstrap CLI call ``setup_logging()`` once.  Every
module then logs through ``get_logger(__name__)``: successful mutations at
INFO, rejected operations at DEBUG.
"""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty third-party loggers held at WARNING regardless of the app level.
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "sqlalchemy.pool")


def setup_logging(level: int | str = logging.INFO) -> None:
    """Send every record to stdout in one format.

    *level* may be a logging constant or a name such as ``"DEBUG"``; names
    are matched case-insensitively so ``LOG_LEVEL=debug`` works.
    """
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
