"""
Logging setup shared by the worker and any embedding application.

Every module logs through logging.getLogger(__name__) with pipe-delimited
"Component | key=value" messages; this only installs the root format.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Chatty third-party loggers that drown out pipeline lines at DEBUG
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "botocore", "aiobotocore", "urllib3")


def configure_logging(debug: bool = False, logger: logging.Logger | None = None) -> None:
    """
    Apply the standard format. With `logger` (Celery's after_setup_logger
    hook) the format is applied to that logger's handlers instead of root.
    """
    level = logging.DEBUG if debug else logging.INFO

    if logger is None:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    else:
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setFormatter(logging.Formatter(LOG_FORMAT))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
