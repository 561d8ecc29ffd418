"""
Logging configuration for the feed inference toolkit.

Every record passing through the root handler is tagged with the id of the
discovery run that produced it, so one feed's fetches, mapping passes and
artifact writes can be grepped out of a shared log.
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar, Token
from typing import Optional, TextIO

from .constants import DEFAULT_LOG_LEVEL, LOG_FORMAT

# Transport libraries log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore")

_PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_current_run_id: ContextVar[str] = ContextVar("feed_run_id", default="-")


def setup_logging(
    level: Optional[str] = None,
    format_string: Optional[str] = None,
    include_run_id: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Route all feed inference logging through one root handler.

    Args:
        level: Level name; falls back to ``LOG_LEVEL`` and then INFO
        format_string: Record format, ``LOG_FORMAT`` by default
        include_run_id: Drop the ``[run_id]`` column when False
        stream: Output stream, stdout by default

    Example:
        >>> setup_logging(level="DEBUG")
        >>> logging.getLogger("feed_inference").debug(f"mapping {url}")
    """
    level_name = (level or os.getenv("LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    if not include_run_id:
        log_format = _PLAIN_FORMAT
    else:
        log_format = format_string or LOG_FORMAT

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(RunIDFilter())

    # force=True replaces handlers installed by an earlier call
    logging.basicConfig(level=numeric_level, format=log_format, handlers=[handler], force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(f"Logging configured at {level_name}")


class RunIDFilter(logging.Filter):
    """
    Logging filter that adds the discovery run id to log records.

    Without an explicit ``run_id`` the value comes from the current context
    (see ``set_run_id``). Records logged outside a pipeline run get "-".
    """

    def __init__(self, run_id: Optional[str] = None):
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        if self.run_id is not None:
            record.run_id = self.run_id
        elif not hasattr(record, "run_id"):
            record.run_id = _current_run_id.get()
        return True


def set_run_id(run_id: str) -> Token:
    """Tag log records emitted in the current context with ``run_id``."""
    return _current_run_id.set(run_id)


def reset_run_id(token: Token) -> None:
    _current_run_id.reset(token)
