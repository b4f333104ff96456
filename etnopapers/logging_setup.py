"""
Logging configuration for the extractor.

Modules log through `logging.getLogger(__name__)`; entry points (CLI, API)
call setup_logging() once.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "etnopapers.log"
MAX_LOG_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

_HANDLER_TAG = "_etnopapers_handler"


def setup_logging(level: Union[int, str] = logging.INFO,
                  log_dir: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Configure the `etnopapers` logger.

    Args:
        level: Log level for the package logger
        log_dir: Directory for a rotating log file; console only when None

    Returns:
        The package logger
    """
    package_logger = logging.getLogger("etnopapers")
    package_logger.setLevel(level)

    # Calling twice replaces our handlers instead of stacking them
    for handler in list(package_logger.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            package_logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(DEFAULT_FORMAT, DEFAULT_DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    setattr(console, _HANDLER_TAG, True)
    package_logger.addHandler(console)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path / LOG_FILE_NAME,
            maxBytes=MAX_LOG_SIZE,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_TAG, True)
        package_logger.addHandler(file_handler)

    return package_logger
