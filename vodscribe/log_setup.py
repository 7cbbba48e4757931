"""Root logger wiring for the vodscribe CLI: stdout plus an optional rotating file."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from .exceptions import FileSystemError
from .utils import ensure_dir_exists

DEFAULT_LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5


def _rotating_file_handler(log_dir: str, log_file: str, max_bytes: int, backup_count: int) -> RotatingFileHandler:
    ensure_dir_exists(log_dir)
    return RotatingFileHandler(
        os.path.join(log_dir, log_file),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding='utf-8',
    )


def setup_logging(
    log_level: int = logging.INFO,
    log_dir: Optional[str] = "logs",
    log_file: str = "vodscribe.log",
    log_format: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> None:
    """
    Replaces the root logger's handlers with a stdout handler and, when
    log_dir is given, a rotating file under it.

    A log directory that cannot be used is reported on stdout and the run
    continues with console logging only.
    """
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.setLevel(log_level)

    formatter = logging.Formatter(log_format, datefmt=date_format)
    handlers = [logging.StreamHandler(sys.stdout)]
    file_error = None
    if log_dir:
        try:
            handlers.append(_rotating_file_handler(log_dir, log_file, max_bytes, backup_count))
        except (OSError, FileSystemError) as e:
            file_error = e

    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    if file_error is not None:
        root.error(f"File logging disabled, {log_dir}/{log_file} is unusable: {file_error}")
    elif log_dir:
        root.debug(f"Writing log file {os.path.join(log_dir, log_file)}")

    # asyncio reports every slow subprocess callback in debug mode
    logging.getLogger("asyncio").setLevel(logging.WARNING)
