"""
Logging setup for the invoice intake system.

Every module logs through a child of the ``invoice_intake`` logger, so
one call to setup_logger() (or setup_logger_from_config() from the CLI)
decides where all worker, queue and extraction messages go.

Usage:
    from invoice_intake.utils.logger import get_logger

    logger = get_logger(__name__)
    logger.info(f"Worker {worker_id} claimed job {job.id}")
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

import colorama
from colorama import Fore, Style

colorama.init()

APP_LOGGER_NAME = "invoice_intake"

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """Console formatter coloring each line by level (colorama)."""

    LEVEL_COLORS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        if not color:
            return line
        return f"{color}{line}{Style.RESET_ALL}"


def _level_number(level: str) -> int:
    number = logging.getLevelName(str(level).upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown logging level: {level!r}")
    return number


def _console_handler(level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _rotating_file_handler(
    path: Path,
    level: int,
    formatter: logging.Formatter,
    max_bytes: int,
    backup_count: int,
) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding='utf-8',
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logger(
    level: str = "INFO",
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    log_file: Optional[str] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    colorize: bool = True,
) -> logging.Logger:
    """
    Configure the ``invoice_intake`` logger.

    Safe to call more than once: previous handlers are replaced. The
    application logger does not propagate to the root logger.

    Args:
        level: Level name applied to the logger and its handlers.
        log_format: Record format; DEFAULT_FORMAT when omitted.
        date_format: ``asctime`` format; DEFAULT_DATE_FORMAT when omitted.
        log_file: Size-rotated log file; no file logging when omitted.
        max_bytes: Rotation size of the log file.
        backup_count: Rotated files kept.
        colorize: Color console lines by level.

    Returns:
        The application logger.

    Raises:
        ValueError: If ``level`` is not a logging level name.
    """
    level_number = _level_number(level)
    log_format = log_format or DEFAULT_FORMAT
    date_format = date_format or DEFAULT_DATE_FORMAT

    formatter_class = ColoredFormatter if colorize else logging.Formatter

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(level_number)
    app_logger.handlers.clear()
    app_logger.addHandler(
        _console_handler(level_number, formatter_class(log_format, datefmt=date_format))
    )

    if log_file:
        app_logger.addHandler(_rotating_file_handler(
            Path(log_file),
            level_number,
            logging.Formatter(log_format, datefmt=date_format),
            max_bytes,
            backup_count,
        ))

    app_logger.propagate = False
    app_logger.debug(f"Logging configured at {logging.getLevelName(level_number)}")
    return app_logger


def get_logger(name: str) -> logging.Logger:
    """
    Child logger of the application logger.

    ``get_logger("invoice_intake.job_queue.queue")`` and
    ``get_logger("job_queue")`` both land under ``invoice_intake``.
    """
    if name == APP_LOGGER_NAME or name.startswith(f"{APP_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{APP_LOGGER_NAME}.{name}")


def setup_logger_from_config(level: Optional[str] = None) -> logging.Logger:
    """
    Configure logging from the ``logging.*`` settings.

    Args:
        level: Overrides ``logging.level`` (the CLI passes "DEBUG" for
            ``--debug``).
    """
    from config import get_config

    log_file = None
    if get_config("logging.file.enabled", False):
        log_file = get_config("logging.file.path", "logs/invoice_intake.log")

    return setup_logger(
        level=level or get_config("logging.level", "INFO"),
        log_format=get_config("logging.format", DEFAULT_FORMAT),
        date_format=get_config("logging.date_format", DEFAULT_DATE_FORMAT),
        log_file=log_file,
        max_bytes=get_config("logging.file.max_bytes", 10 * 1024 * 1024),
        backup_count=get_config("logging.file.backup_count", 5),
        colorize=get_config("logging.console.colorize", True),
    )
