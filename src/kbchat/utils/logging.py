"""
Logging setup for the knowledge base service.
"""

import logging
import sys
from typing import IO, Optional

from kbchat.utils.config import Settings

LOGGER_NAME = "kbchat"
HANDLER_NAME = "kbchat-stream"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# HTTP clients under the OpenAI and Qdrant SDKs log every request at INFO
HTTP_CLIENT_LOGGERS = ("httpx", "httpcore")


def parse_level(level: int | str) -> int:
    """Resolve a level name such as ``"debug"`` to its numeric value."""
    if isinstance(level, int):
        return level

    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def configure_logging(settings: Settings, stream: Optional[IO[str]] = None) -> logging.Logger:
    """
    Configure the ``kbchat`` logger tree from the service settings.

    A single stream handler is attached, so repeated calls only update the
    level and stream. Request logs of the HTTP clients stay at WARNING
    unless the service runs at DEBUG.

    Args:
        settings: Service settings; ``log_level`` is applied
        stream: Output stream (defaults to stderr)

    Returns:
        The ``kbchat`` logger
    """
    level = parse_level(settings.log_level)
    logger = logging.getLogger(LOGGER_NAME)

    handler = next((h for h in logger.handlers if h.get_name() == HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.set_name(HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    elif stream is not None:
        handler.setStream(stream)

    logger.setLevel(level)

    for name in HTTP_CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    return logger
