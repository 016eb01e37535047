# src/parley/logging_setup.py
from __future__ import annotations
import logging
import os
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

ROOT_LOGGER = "parley"
_HANDLER_ATTR = "_parley_handler"

_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def parse_level(value: Union[str, int, None], default: int = logging.WARNING) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    return _LEVELS.get(str(value).strip().lower(), default)


def configure_logging(level: Union[str, int, None] = None, *, console: Optional[Console] = None) -> logging.Logger:
    """
    Initialise the 'parley' logger once. Later calls only adjust the level.
    PARLEY_LOG_LEVEL overrides the configured level.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    desired = parse_level(os.getenv("PARLEY_LOG_LEVEL") or level)
    logger.setLevel(desired)

    for h in logger.handlers:
        if getattr(h, _HANDLER_ATTR, False):
            h.setLevel(desired)
            return logger

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setLevel(desired)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    setattr(handler, _HANDLER_ATTR, True)
    logger.addHandler(handler)
    return logger
