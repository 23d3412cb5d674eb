"""Logging configuration for the dashboard backend."""
import logging
import sys

logger = logging.getLogger("dashboard")


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Install a single console handler on the package logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)

    Returns:
        Configured package logger
    """
    logger.handlers.clear()
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger
