"""Logging setup for the server.

All loggers live under the ``pokerroom`` namespace and share one stdout
handler attached to that root, so per-module loggers only carry a name.
"""
import logging
import sys
from typing import Optional

from pokerroom.config import config

ROOT_LOGGER = "pokerroom"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach the stdout handler to the package root logger (once).

    Args:
        level: Level name; defaults to ``config.log_level``.

    Returns:
        The package root logger.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
        root.propagate = False

    level_name = (level or config.log_level).upper()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger for a module, e.g. ``get_logger(__name__)``.

    Names outside the package (such as ``__main__``) are nested under it so
    they still go through the shared handler.
    """
    configure_logging()
    if not name or name == ROOT_LOGGER:
        return logging.getLogger(ROOT_LOGGER)
    if not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
