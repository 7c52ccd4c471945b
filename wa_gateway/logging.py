"""
Logger setup shared by every gateway module.

Console output is colored by level; errors also go to a daily
``<LOG_DIR>/<YYYY-MM-DD>-errors.log`` file with their tracebacks.
"""

import logging
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(levelname)s:     %(message)s (%(filename)s:%(lineno)d)"

COLORS = {
    "DEBUG": "\033[94m",
    "INFO": "\033[92m",
    "WARNING": "\033[93m",
    "ERROR": "\033[91m",
    "CRITICAL": "\033[1;91m",
}
RESET = "\033[0m"


class ColoredFormatter(logging.Formatter):
    """Colors the level name so failed sends stand out from request logs."""

    def format(self, record):
        plain = record.levelname
        color = COLORS.get(plain)
        if color:
            record.levelname = f"{color}{plain}{RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


def error_log_path(log_dir) -> Path:
    return Path(log_dir) / f"{datetime.now():%Y-%m-%d}-errors.log"


def setup_logger(name: str) -> logging.Logger:
    """
    Return the logger for ``name`` at ``LOG_LEVEL``, attaching the console
    and daily error-file handlers the first time it is requested.
    """
    from wa_gateway.config import settings

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT))
    logger.addHandler(console_handler)

    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    error_file_handler = logging.FileHandler(error_log_path(log_dir))
    error_file_handler.setLevel(logging.ERROR)
    error_file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(error_file_handler)

    return logger


def log_exception(logger: logging.Logger, message: str, exc: BaseException) -> None:
    """Log ``message`` at error level with the traceback of ``exc``."""
    logger.error(message, exc_info=(type(exc), exc, exc.__traceback__))
