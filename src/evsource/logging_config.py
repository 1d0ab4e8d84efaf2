"""Structured logging: structlog JSON lines through stdlib handlers.

Rendered events are handed to the ``evsource`` stdlib logger, so the hourly
TimedRotatingFileHandler sees every line and rolls the file over itself.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import TimedRotatingFileHandler

import structlog

LOGGER_NAME = "evsource"
LOG_FILENAME = "evsource.jsonl"


def setup_logging(log_dir: str = "logs", log_level: str = "INFO") -> list[logging.Handler]:
    """Send structlog JSON to an hourly rotating file and stderr.

    Returns the installed handlers. Calling again replaces them.
    """
    log_level = log_level.upper()
    os.makedirs(log_dir, exist_ok=True)

    file_handler = TimedRotatingFileHandler(
        filename=os.path.join(log_dir, LOG_FILENAME),
        when="H",
        interval=1,
        backupCount=48,
        utc=True,
    )
    stderr_handler = logging.StreamHandler(sys.stderr)

    # structlog has already rendered the JSON; emit it untouched
    plain = logging.Formatter("%(message)s")
    handlers: list[logging.Handler] = [file_handler, stderr_handler]

    logger = logging.getLogger(LOGGER_NAME)
    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    for handler in handlers:
        handler.setFormatter(plain)
        handler.setLevel(log_level)
        logger.addHandler(handler)
    logger.setLevel(log_level)
    logger.propagate = False

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(log_level)
        ),
        context_class=dict,
        logger_factory=lambda *args: logger,
        cache_logger_on_first_use=True,
    )
    return handlers
