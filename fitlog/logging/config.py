# =============================================================================
# fitlog/logging/config.py
# Logging setup for the FitLog app and its background sync threads
# =============================================================================

import logging
import sys
import time
from pathlib import Path
from datetime import datetime
from typing import Optional


LOG_FORMAT = "%(asctime)s | %(threadName)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_DIR = Path("logs")

# Held at WARNING
QUIET_LOGGERS = ("urllib3", "requests", "streamlit")


def setup_logging(
    level: int = logging.INFO,
    log_to_file: bool = True,
    log_filename: Optional[str] = None,
) -> None:
    """
    Log to stdout and, unless disabled, to logs/fitlog_<date>.log.

    Safe to call on every Streamlit rerun: basicConfig(force=True) replaces
    the handlers instead of stacking them.
    """
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_to_file:
        LOG_DIR.mkdir(exist_ok=True)
        log_filename = log_filename or f"fitlog_{datetime.now():%Y-%m-%d}.log"
        handlers.append(logging.FileHandler(LOG_DIR / log_filename))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("fitlog").info("Logging initialized")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """Logs "<operation>... started", then "completed (Ns)" or "failed (Ns)"."""

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.start_time = None

    def __enter__(self):
        self.start_time = time.monotonic()
        self.logger.info(f"{self.operation}... started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.monotonic() - self.start_time

        if exc_type is None:
            self.logger.info(f"{self.operation}... completed ({elapsed:.2f}s)")
        else:
            self.logger.error(f"{self.operation}... failed ({elapsed:.2f}s): {exc_val}", exc_info=True)
        return False
