"""Custom Exceptions for the vodscribe application."""

from typing import Optional, Sequence


class VodScribeError(Exception):
    """Base class for exceptions in this package."""
    pass

class ConfigurationError(VodScribeError):
    """Exception raised for errors in configuration loading or validation."""
    pass

class FileSystemError(VodScribeError):
    """Exception raised for file system related errors (permissions, not found etc)."""
    pass

class StorageError(VodScribeError):
    """Exception raised when the transcript store rejects a read or write."""
    pass


class TransientIOError(VodScribeError):
    """An external tool or file operation failed in a way worth retrying."""
    pass

class CommandError(TransientIOError):
    """Exception raised when an external process exits with a nonzero code."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        tail = stderr.strip().splitlines()[-5:] if stderr else []
        message = f"'{self.command[0]}' exited with code {returncode}"
        if tail:
            message += ": " + " | ".join(tail)
        super().__init__(message)

class EmptyOutputError(TransientIOError):
    """Exception raised when a tool produced a missing or zero-byte file."""
    pass

class TranscriptReadError(TransientIOError):
    """Exception raised when a transcript JSON file cannot be read or decoded."""
    pass


class ResourceError(VodScribeError):
    """The source media itself is unusable (corrupt, empty, zero length)."""
    pass

class InvalidDurationError(ResourceError):
    """Exception raised when the probed duration is not a positive, finite number."""
    pass


class TranscriptValidationError(VodScribeError):
    """
    Exception raised when speech engine output does not match the transcript schema.

    Never retried: the same engine and model would produce the same document again.
    """

    def __init__(self, message: str, chunk_index: Optional[int] = None):
        self.chunk_index = chunk_index
        super().__init__(message)


class RetryExhaustedError(VodScribeError):
    """Exception raised when an operation failed on every allowed attempt."""

    def __init__(self, name: str, attempts: int, last_error: BaseException):
        self.name = name
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{name} failed after {attempts} attempt(s): {last_error}")
