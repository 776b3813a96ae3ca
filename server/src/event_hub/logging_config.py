"""Logging setup for Event Hub: INFO/DEBUG to stdout, WARNING and above to stderr"""

import logging
import sys

from event_hub.config import config

LOG_FORMAT = "%(asctime)s %(levelname)s:%(name)s:%(message)s"

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


class BelowWarningFilter(logging.Filter):
    """Let through only records below WARNING"""

    def filter(self, record):
        return record.levelno < logging.WARNING


def setup_logging(level_name: str | None = None) -> None:
    """
    Install stdout/stderr handlers on the root logger.

    Args:
        level_name: Overrides the LOG_LEVEL from config when given
    """
    level_name = (level_name or config.get("log_level") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    formatter = logging.Formatter(LOG_FORMAT)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(logging.DEBUG)
    stdout_handler.addFilter(BelowWarningFilter())
    stdout_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    # Calling setup twice (tests, reload) must not duplicate output
    root_logger.handlers.clear()
    root_logger.addHandler(stdout_handler)
    root_logger.addHandler(stderr_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Return the module logger; callers pass __name__"""
    return logging.getLogger(name)
