"""
AccessGB - Logging Configuration
Structured JSON logging for production, readable lines for development
"""

import logging
import os
import sys
from datetime import datetime
from typing import Optional

from pythonjsonlogger import jsonlogger

from config.settings import get_settings

settings = get_settings()


def _build_formatter() -> logging.Formatter:
    if settings.ENVIRONMENT == "production":
        # JSON lines are easier to ship to log aggregation
        return jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s", datefmt="%Y-%m-%dT%H:%M:%S"
        )
    return logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )


def setup_logging(name: str = "accessgb", level: Optional[str] = None) -> logging.Logger:
    """
    Configure structured logging for the application.

    Args:
        name: Logger name, also used as the log file prefix
        level: Override for settings.LOG_LEVEL (e.g. "DEBUG")

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if level is None:
        level = "DEBUG" if settings.DEBUG else settings.LOG_LEVEL
    logger.setLevel(getattr(logging, level.upper()))

    logger.handlers = []
    # Root gets the same handlers below; propagating would log twice
    logger.propagate = False

    formatter = _build_formatter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    if settings.LOG_DIR:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        log_file = os.path.join(settings.LOG_DIR, f"{name}_{datetime.now().strftime('%Y%m%d')}.log")

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    # Module loggers (get_logger(__name__)) have no handlers of their own
    root_logger = logging.getLogger()
    root_logger.setLevel(logger.level)
    root_logger.handlers = []
    for h in logger.handlers:
        root_logger.addHandler(h)

    return logger


def get_logger(module_name: str) -> logging.Logger:
    """Module logger; output goes through the handlers setup_logging put on root."""
    return logging.getLogger(module_name)
