# src/utils/logger.py
import logging
import os
import sys
from typing import Optional

DEFAULT_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s]: %(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(level: Optional[int]) -> int:
    if level is not None:
        return level
    name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, name, None)
    return level if isinstance(level, int) else logging.INFO


def setup_logger(
    name: str,
    level: Optional[int] = None,
    format_string: Optional[str] = None,
    datefmt: Optional[str] = None,
) -> logging.Logger:
    """
    Set up a named logger writing to stdout.

    Args:
        name: Logger name, upper-case component name by convention
            (e.g. "ORDER_SERVICE")
        level: Logging level; defaults to the LOG_LEVEL environment variable
        format_string: Custom format string for log messages
        datefmt: Custom date format string

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    resolved = _resolve_level(level)
    logger.setLevel(resolved)

    formatter = logging.Formatter(
        format_string or DEFAULT_FORMAT, datefmt=datefmt or DEFAULT_DATEFMT
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(resolved)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Root propagation off unless LOG_PROPAGATE is set, to avoid duplicates
    logger.propagate = os.getenv("LOG_PROPAGATE", "false").lower() == "true"

    return logger
