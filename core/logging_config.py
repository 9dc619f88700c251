"""Root logger setup.

Modules log through ``logging.getLogger(__name__)``; the application
calls setup_logging() once at startup.
"""

import logging
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty third-party loggers kept at WARNING unless DEBUG is requested.
_QUIET_LOGGERS = ("httpx", "httpcore", "stripe", "sqlalchemy.engine")


def setup_logging(level: str | None = None) -> None:
    resolved = (level or LOG_LEVEL).upper()
    logging.basicConfig(
        level=resolved,
        format=LOG_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    if resolved != "DEBUG":
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
