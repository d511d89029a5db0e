"""
Logging configuration

Every module logs through get_logger(__name__); the first call for a name
attaches a stdout handler at the configured LOG_LEVEL.
"""
import logging
import sys
from typing import Optional

from maintdesk.config import get_settings

settings = get_settings()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Attach a stdout handler to the named logger

    Args:
        name: Logger name (usually __name__)
        level: Level name; defaults to settings.log_level

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, (level or settings.log_level).upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    # Handler is attached here; avoid duplicate lines through the root logger
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, configured on first use"""
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger = setup_logger(name)
    return logger
