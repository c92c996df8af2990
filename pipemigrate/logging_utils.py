"""Logging setup for applications embedding the engine."""

import logging
from typing import Union

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Attach a single stream handler to the package logger.

    Calling it again only changes the level.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger("pipemigrate")
    logger.setLevel(level)
    if not any(getattr(handler, "_pipemigrate", False) for handler in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._pipemigrate = True
        logger.addHandler(handler)
    return logger
