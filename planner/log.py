"""Logging setup for the planner package."""

from __future__ import annotations

import logging
from typing import Optional

LOGGER_NAME = "planner"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger under the package namespace."""
    if not name or name == LOGGER_NAME:
        return logging.getLogger(LOGGER_NAME)
    if name.startswith(LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def configure_logging(level: str = "INFO", handler: Optional[logging.Handler] = None) -> logging.Logger:
    """
    Configure the package logger once.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ...)
        handler: Handler to attach; defaults to a plain stream handler

    Returns:
        The package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Prevent duplicate handlers if configured multiple times
    if not logger.handlers:
        if handler is None:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(
                "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ))
        logger.addHandler(handler)
        logger.propagate = False

    return logger
