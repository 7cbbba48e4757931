"""Utility functions for vodscribe."""

import os
import logging
from .exceptions import FileSystemError

logger = logging.getLogger(__name__)

def ensure_dir_exists(dir_path: str) -> None:
    """
    Creates dir_path (and parents) unless it is already a directory.

    Raises:
        ValueError: For an empty path.
        FileSystemError: When the path is taken by a file or cannot be created.
    """
    if not dir_path:
        raise ValueError("Directory path cannot be empty.")
    if os.path.isdir(dir_path):
        return
    try:
        # raises FileExistsError when a regular file holds the name
        os.makedirs(dir_path, exist_ok=True)
    except OSError as e:
        logger.error(f"Cannot use {dir_path} as a directory: {e}")
        raise FileSystemError(f"Cannot use {dir_path} as a directory: {e}") from e
    logger.debug(f"Created directory {dir_path}")

def prepare_directories(*dir_paths: str) -> None:
    """Ensures every working directory exists before the pipeline touches it."""
    for dir_path in dir_paths:
        ensure_dir_exists(dir_path)

def format_chunk_number(chunk_index: int, total_chunks: int) -> str:
    """
    Formats a zero-based chunk index as a 1-based, zero-padded number.

    The padding width is the digit count of total_chunks, so
    format_chunk_number(0, 123) == "001" and format_chunk_number(122, 123) == "123".
    """
    width = len(str(total_chunks))
    return str(chunk_index + 1).zfill(width)

def file_size(path: str) -> int:
    """Returns the size of a file in bytes, or 0 if it does not exist."""
    try:
        return os.path.getsize(path)
    except OSError:
        return 0

def format_time(seconds: float) -> str:
    """
    Formats seconds as HH:MM:SS for log output.

    Args:
        seconds: Time in seconds.

    Returns:
        Formatted time string.
    """
    if seconds < 0:
        seconds = 0.0
    total = int(round(seconds))
    hrs, rem = divmod(total, 3600)
    mins, secs = divmod(rem, 60)
    return f"{hrs:02d}:{mins:02d}:{secs:02d}"
