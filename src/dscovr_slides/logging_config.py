"""Logging setup for the CLI.

API calls and image downloads run on the "api" and "images" queue threads,
so every record carries the thread it came from.
"""

import logging
import sys
from typing import TextIO

PACKAGE_LOGGER = "dscovr_slides"
LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

# Log one line per HTTP request at INFO
CHATTY_LOGGERS = ("httpx", "httpcore")


def setup_logging(debug: bool = False, stream: TextIO | None = None) -> logging.Handler:
    """Send package logs to ``stream`` (stderr by default).

    Calling it again replaces the handler installed by the previous call.
    Returns the new handler.
    """
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    logger = logging.getLogger(PACKAGE_LOGGER)
    for previous in list(logger.handlers):
        logger.removeHandler(previous)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else logging.WARNING)

    return handler
