"""
Logging configuration for the hrtrack backend

Log timestamps are rendered in the business timezone so they line up with work dates.
"""
import logging
import sys
from datetime import datetime
from zoneinfo import ZoneInfo

from hrtrack.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty third-party loggers and the level they are capped at
QUIET_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


class BusinessTimeFormatter(logging.Formatter):
    """Formatter whose %(asctime)s is local business time with UTC offset."""

    def __init__(self, fmt: str, tz_name: str):
        super().__init__(fmt)
        self.tz = ZoneInfo(tz_name)

    def formatTime(self, record, datefmt=None):
        stamp = datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return stamp.strftime(datefmt)
        return stamp.isoformat(timespec="milliseconds")


def setup_logging() -> None:
    """
    Configure the root logger once: stdout handler, level from settings.LOG_LEVEL,
    third-party loggers capped via QUIET_LOGGERS.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(BusinessTimeFormatter(LOG_FORMAT, settings.APP_TIMEZONE))

    root = logging.getLogger()
    root.setLevel(getattr(logging, settings.LOG_LEVEL, logging.INFO))
    # replace rather than stack handlers when the app module is re-imported
    for existing in list(root.handlers):
        if isinstance(existing.formatter, BusinessTimeFormatter):
            root.removeHandler(existing)
    root.addHandler(handler)

    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, env=%s, tz=%s",
        settings.LOG_LEVEL, settings.APP_ENV, settings.APP_TIMEZONE,
    )
