"""Shared logger for the advisor backend, leveled by LOG_LEVEL."""
import logging

from .config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

logger = logging.getLogger("advisor")
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(get_settings().log_level)


def get_logger(name: str = "") -> logging.Logger:
    """The `advisor` logger, or its `advisor.<name>` child for one module."""
    return logger.getChild(name) if name else logger
