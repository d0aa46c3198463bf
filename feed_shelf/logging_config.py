"""Logging setup for feed_shelf.

Logs go to stderr: stdout carries the MCP STDIO transport.
"""

import logging
import sys

from feed_shelf.config import ServerConfig

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

logger = logging.getLogger("feed_shelf")


def setup_logging(config: ServerConfig) -> logging.Logger:
    """Configure the package logger from the server configuration."""
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logger.setLevel(level)

    if not any(getattr(h, "_feed_shelf", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._feed_shelf = True
        logger.addHandler(handler)

    return logger
