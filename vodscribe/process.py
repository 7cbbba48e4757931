"""Async helpers for running external command-line tools."""

import asyncio
import logging
from typing import Sequence

from .exceptions import CommandError

logger = logging.getLogger(__name__)


async def run_command(cmd: Sequence[str]) -> str:
    """
    Runs a command to completion and returns its decoded stdout.

    Args:
        cmd: Program and arguments, e.g. ['ffprobe', '-v', 'error', ...].

    Returns:
        The process stdout with surrounding whitespace stripped.

    Raises:
        CommandError: If the process exits with a nonzero code.
        FileNotFoundError: If the executable cannot be found.
    """
    logger.debug(f"Running command: {' '.join(str(part) for part in cmd)}")
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )
    stdout, stderr = await process.communicate()

    stderr_text = stderr.decode("utf-8", errors="replace") if stderr else ""
    if process.returncode != 0:
        logger.debug(f"{cmd[0]} stderr: {stderr_text}")
        raise CommandError(cmd, process.returncode, stderr_text)

    return stdout.decode("utf-8", errors="replace").strip() if stdout else ""
