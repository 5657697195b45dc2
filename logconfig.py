"""
Logging setup shared by the library modules and the CLI.
A single stream handler is attached to the root logger on first use.
"""

import logging
import os

_HANDLER_ATTACHED = False
_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level() -> int:
    level_name = os.getenv("ACTIVITY_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; the first call installs the shared handler."""
    global _HANDLER_ATTACHED

    level = _resolve_level()
    if not _HANDLER_ATTACHED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root = logging.getLogger()
        root.addHandler(handler)
        root.setLevel(level)
        _HANDLER_ATTACHED = True

    # module loggers stay at NOTSET so set_level() on the root applies to them
    return logging.getLogger(name)


def set_level(level_name: str):
    """Override the level for the root logger (used by the CLI --log-level flag)."""
    level = getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    logging.getLogger().setLevel(level)
