import logging
from logging.handlers import RotatingFileHandler
import os
import sys

_QUIET_LOGGERS = ("aiosqlite", "urllib3", "python_multipart")


def configure_logging(level: str = "INFO", logfile: str | None = None):
    """
    Configure the root logger for the artist service.

    Parameters
    ----------
    level : str
        Logging level ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL").
        Unknown names fall back to INFO.
    logfile : str | None
        Path of a rotating log file written next to stdout.
        If None, only stdout logging will be used.
    """

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.root.handlers.clear()
    logging.root.setLevel(numeric_level)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logging.root.addHandler(console_handler)

    if logfile:
        log_dir = os.path.dirname(logfile)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            logfile, maxBytes=10 * 1024 * 1024, backupCount=10, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        logging.root.addHandler(file_handler)

    # driver chatter drowns request logs at DEBUG
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.INFO))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
