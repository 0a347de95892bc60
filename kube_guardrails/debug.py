"""Debug sink helpers.

A scanner writes its debug output to a caller supplied text stream rather than
to the application's logging tree, so CI tooling can capture one scanner's
trace without reconfiguring logging globally. The loggers built here are not
registered with the logging manager: two scanners with different sinks never
share handlers.
"""

from __future__ import annotations

import logging
from typing import Optional, TextIO

DEBUG_LOGGER_ROOT = "kube_guardrails"
_FORMAT = "%(asctime)s [%(name)s] %(message)s"


def new_debug_logger(writer: Optional[TextIO], *prefix: str) -> logging.Logger:
    """Return a logger that writes DEBUG records to ``writer``.

    With no writer the logger only has a ``NullHandler`` attached.
    """

    name = ".".join((DEBUG_LOGGER_ROOT,) + tuple(part for part in prefix if part))
    logger = logging.Logger(name, logging.DEBUG)
    logger.propagate = False
    if writer is None:
        logger.addHandler(logging.NullHandler())
        return logger
    handler = logging.StreamHandler(writer)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    return logger


def child_logger(parent: logging.Logger, suffix: str) -> logging.Logger:
    """Return a logger named below ``parent`` that writes to the same handlers."""

    logger = logging.Logger(f"{parent.name}.{suffix}", parent.level)
    logger.propagate = False
    for handler in parent.handlers:
        logger.addHandler(handler)
    return logger
