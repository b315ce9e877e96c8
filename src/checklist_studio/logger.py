"""Logging configuration for Checklist Studio."""
import logging
from typing import Optional

from checklist_studio.config import settings

PACKAGE_LOGGER = 'checklist_studio'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure console logging for the package.

    Args:
        level: Logging level name (default: settings.LOG_LEVEL)

    Returns:
        The package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel((level or settings.LOG_LEVEL).upper())

    # Only one console handler, however often this is called
    if not any(getattr(h, '_checklist_studio', False) for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        console_handler._checklist_studio = True
        logger.addHandler(console_handler)

    return logger
