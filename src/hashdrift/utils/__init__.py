"""Logging and notification helpers for hashdrift."""

import os
import sys
from logging.handlers import SysLogHandler
from pathlib import Path
from typing import Optional

from loguru import logger

SYSLOG_ADDRESS = "/dev/log"
SYSLOG_FORMAT = "hashdrift[{process}]: {message}"


def is_event(record) -> bool:
    """True for records emitted through notify()."""
    return bool(record["extra"].get("event"))


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console: bool = True,
    syslog: bool = False,
) -> None:
    """Configure loguru sinks for a run.

    The console sink writes to stderr. The optional file sink rotates at 10 MB.
    The syslog sink only receives notification events (see `notify`), and is
    skipped when the local syslog socket is not available.
    """
    logger.remove()

    if console:
        logger.add(sys.stderr, level=level, colorize=True, backtrace=False)

    # tests never write log files
    if log_file and os.getenv("HASHDRIFT_ENV") != "test":
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_file),
            level="DEBUG",
            rotation="10 MB",
            retention="10 days",
            backtrace=True,
            diagnose=False,
            enqueue=True,
        )

    if syslog:
        if Path(SYSLOG_ADDRESS).exists():
            logger.add(
                SysLogHandler(address=SYSLOG_ADDRESS),
                level="INFO",
                format=SYSLOG_FORMAT,
                filter=is_event,
            )
        else:
            logger.debug(f"Syslog socket {SYSLOG_ADDRESS} not found, notifications stay local")


def notify(message: str, level: str = "INFO") -> None:
    """Send one operator-visible event line to the notification sink."""
    logger.bind(event=True).log(level, message)
