import logging
import os
from logging.handlers import TimedRotatingFileHandler

from rich.logging import RichHandler

LOG_FILE = os.getenv("POS_LOG_FILE")


class CenteredFormatter(logging.Formatter):
    """Pads logger names to the longest one seen so far so messages line up."""

    longest_name_length = 14

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, len(record.name)
        )
        # copy, other handlers see the same record
        record = logging.makeLogRecord(record.__dict__)
        record.name = record.name.center(CenteredFormatter.longest_name_length)
        return super().format(record)


def _file_handler(path: str, level: int) -> logging.Handler:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=path, when="midnight", backupCount=7, encoding="utf-8"
    )
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    handler.setLevel(level)
    return handler


def get_logger(name=None) -> logging.Logger:
    """
    Creates and returns a logger writing through RichHandler,
    plus a daily rotating file when POS_LOG_FILE is set.
    """
    logger = logging.getLogger(name or "stallmate")
    log_level = logging.DEBUG if os.getenv("DEBUG") else logging.INFO
    logger.setLevel(log_level)

    if not logger.handlers:
        console_handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        console_handler.setFormatter(CenteredFormatter("[%(name)s]  %(message)s"))
        console_handler.setLevel(log_level)
        logger.addHandler(console_handler)

        if LOG_FILE:
            logger.addHandler(_file_handler(LOG_FILE, log_level))

        logger.propagate = False
        logger.debug(f"Logger for '{logger.name}' initialized.")

    return logger
