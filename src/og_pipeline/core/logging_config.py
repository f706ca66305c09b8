"""Centralized logging configuration for the OG image pipeline."""

import os
import sys
import logging
from typing import Optional


def setup_logger(
    name: str = "og-pipeline",
    level: Optional[str] = None,
    format_type: str = "structured",
) -> logging.Logger:
    """
    Setup centralized logging with environment variable configuration.

    Args:
        name: Logger name (defaults to "og-pipeline")
        level: Log level override (defaults to env var or INFO)
        format_type: Logging format ("structured" or "simple")

    Returns:
        Configured logger instance

    Environment Variables:
        LOG_LEVEL: Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_FORMAT: Set format type ("structured" or "simple")
    """
    logger = logging.getLogger(name)

    # Determine log level from parameter, env var, or default
    if level:
        log_level = getattr(logging, level.upper(), logging.INFO)
    else:
        env_level = os.getenv("LOG_LEVEL", "INFO").upper()
        log_level = getattr(logging, env_level, logging.INFO)

    logger.setLevel(log_level)

    # Avoid duplicate handlers
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)

        env_format = os.getenv("LOG_FORMAT", format_type).lower()

        if env_format == "structured":
            formatter = logging.Formatter(
                "%(asctime)s | %(name)s | %(levelname)-8s | "
                "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        else:
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )

        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # Prevent duplicate log messages
    logger.propagate = False
    return logger


def get_logger(name: str = "og-pipeline") -> logging.Logger:
    """
    Get a logger instance with consistent configuration.

    Args:
        name: Logger name

    Returns:
        Configured logger instance
    """
    return setup_logger(name)


def set_debug_logging(*names: str) -> None:
    """Switch the pipeline loggers (and the root logger) to DEBUG."""
    for name in names or ("og-pipeline",):
        logging.getLogger(name).setLevel(logging.DEBUG)
    logging.getLogger().setLevel(logging.DEBUG)


# Create default logger instance
logger = setup_logger()
