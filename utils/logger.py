"""
utils/logger.py
Simple logging wrapper for WeakScan
"""

import logging
import sys


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """
    Get a configured logger instance.

    Loggers below "weakscan." share the handler of the root "weakscan"
    logger, so only that one gets a handler attached.

    Args:
        name: Logger name (usually "weakscan.<module>")
        level: Logging level (default: INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid duplicate handlers
    if logger.handlers or "." in name:
        return logger

    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)

    # Format: LEVEL - message
    formatter = logging.Formatter(
        '%(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    return logger


def set_level(level: str | int) -> None:
    """Change the level of the root "weakscan" logger (e.g. "DEBUG")."""
    if isinstance(level, str):
        value = logging.getLevelName(level.upper())
        if not isinstance(value, int):
            raise ValueError(f"Unknown log level {level!r}")
        level = value
    log.setLevel(level)


# Default logger instance
log = get_logger("weakscan")


__all__ = ["get_logger", "set_level", "log"]
