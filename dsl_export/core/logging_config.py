"""
Logging configuration for the exporter CLI.
"""
import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure the package logger with a console handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        The configured ``dsl_export`` logger
    """
    logger = logging.getLogger("dsl_export")

    log_level = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logger.setLevel(log_level)

    # Avoid adding handlers multiple times
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(log_level)
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(console_handler)

    logger.propagate = False

    return logger
