"""
Logging setup for the lift caller.

Our own loggers live under the ``lift`` namespace (``lift.auth``,
``lift.session``, ...). The websockets and aiohttp loggers get the same
handler at their own, usually quieter, level. Log lines go to stderr so
stdout stays free for spoken responses.

Environment Variables:
    LIFT_LOG_LEVEL - Level for lift.* loggers. Default: INFO
    LIFT_LIBRARY_LOG_LEVEL - Level for websockets/aiohttp loggers. Default: WARNING
"""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

LIBRARY_LOGGERS = ("websockets", "aiohttp")


def _level(value: Optional[str], env: str, default: str) -> int:
    name = (value or os.getenv(env, default)).upper()
    return getattr(logging, name, getattr(logging, default))


def setup_logging(
    level: Optional[str] = None,
    library_level: Optional[str] = None,
    name: str = "lift",
) -> logging.Logger:
    """
    Attach a stderr handler to the lift namespace and the library loggers.

    Calling it again replaces the handlers instead of stacking them.

    Args:
        level: Level for ``name``; falls back to LIFT_LOG_LEVEL
        library_level: Level for websockets/aiohttp; falls back to LIFT_LIBRARY_LOG_LEVEL
        name: Root of our logger namespace

    Returns:
        The ``name`` logger
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    logger = logging.getLogger(name)
    logger.setLevel(_level(level, "LIFT_LOG_LEVEL", "INFO"))
    logger.handlers.clear()
    logger.addHandler(handler)

    library = _level(library_level, "LIFT_LIBRARY_LOG_LEVEL", "WARNING")
    for lib in LIBRARY_LOGGERS:
        lib_logger = logging.getLogger(lib)
        lib_logger.setLevel(library)
        lib_logger.handlers.clear()
        lib_logger.addHandler(handler)

    return logger
