"""
logging_setup.py — one place that configures the `evenly` logger tree.

Every module logs through logging.getLogger(__name__); only this function
touches handlers and levels.
"""

from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(config) -> logging.Logger:
    """
    Attaches a stderr handler to the `evenly` logger at config.LOG_LEVEL.

    Safe to call more than once: an existing handler is reused and only the
    level is updated.
    """
    logger = logging.getLogger("evenly")

    level_name = str(getattr(config, "LOG_LEVEL", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    logger.setLevel(level)

    if not any(getattr(h, "_evenly_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._evenly_handler = True
        logger.addHandler(handler)

    return logger
