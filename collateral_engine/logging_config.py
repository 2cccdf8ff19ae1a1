"""
Logging configuration for the collateral engine.
"""

import logging
from typing import Union

LOGGER_NAME = "collateral_engine"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Configure the package logger with a console handler.

    Calling it again only updates the level; handlers are added once.

    Returns:
        The configured ``collateral_engine`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False

    return logger
