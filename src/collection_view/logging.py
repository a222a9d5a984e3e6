"""Logging setup for the ``collection_view`` logger hierarchy.

Every module logs through ``logging.getLogger(__name__)``; hosts that do
not configure logging themselves can call :func:`configure_logging` once.
"""

from __future__ import annotations

import logging

from .settings import settings

LOGGER_NAME = "collection_view"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(debug: bool = False, level: str | None = None) -> logging.Logger:
    """Set the package log level and attach a stream handler once.

    ``debug`` wins over ``level``; ``level`` defaults to
    ``settings.log_level``.  Unknown level names fall back to INFO.
    """
    if debug:
        resolved = logging.DEBUG
    else:
        name = (level or settings.log_level).upper()
        resolved = logging.getLevelName(name)
        if not isinstance(resolved, int):
            resolved = logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolved)
    if not any(getattr(h, "_collection_view", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._collection_view = True
        logger.addHandler(handler)
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger, or a child of it for *name*."""
    if not name or name == LOGGER_NAME:
        return logging.getLogger(LOGGER_NAME)
    if name.startswith(LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
