"""Exception hierarchy and error helpers for Vaultkeep."""

from __future__ import annotations

import functools
import logging
import time
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar, Union

logger = logging.getLogger("VAULTKEEP.Errors")

T = TypeVar("T")


class VaultkeepException(Exception):
    """Base exception for the Vaultkeep engine."""

    def __init__(self, message: str, context: Optional[dict] = None):
        """Initialize exception with context.

        Args:
            message: Error message
            context: Dictionary with additional context (path, month, query, ...)
        """
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        """String representation with context."""
        result = f"[{self.__class__.__name__}] {self.message}"
        if self.context:
            result += f" (context: {self.context})"
        return result


class ConfigurationError(VaultkeepException):
    """Raised when configuration is invalid."""
    pass


class StorageError(VaultkeepException):
    """Raised when a storage operation fails."""
    pass


class ArchiveError(StorageError):
    """Raised when an archive file cannot be read or written."""
    pass


class ArchiveCorruptedError(ArchiveError):
    """Raised when an explicitly requested archive file cannot be parsed."""

    def __init__(self, path: Union[str, Path], reason: str = ""):
        self.path = Path(path)
        message = f"Archive file is corrupted: {self.path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message, context={"path": str(self.path)})


class ValidationError(VaultkeepException):
    """Raised when caller input is rejected before any I/O."""
    pass


class InvalidDateError(ValidationError):
    """Raised when a restore date cannot be turned into a month key."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid date format: {value!r}", context={"value": value})


class RestoreFilterError(ValidationError):
    """Raised when a restore request does not name exactly one filter."""
    pass


def timed_operation(operation_name: str, log_level: int = logging.DEBUG) -> Callable:
    """Decorator to log operation timing."""
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            start = time.monotonic()
            try:
                result = func(*args, **kwargs)
                elapsed = time.monotonic() - start
                logger.log(log_level, f"{operation_name} completed in {elapsed:.3f}s")
                return result
            except Exception as e:
                elapsed = time.monotonic() - start
                logger.error(f"{operation_name} failed after {elapsed:.3f}s: {e}")
                raise
        return wrapper
    return decorator


__all__ = [
    "VaultkeepException",
    "ConfigurationError",
    "StorageError",
    "ArchiveError",
    "ArchiveCorruptedError",
    "ValidationError",
    "InvalidDateError",
    "RestoreFilterError",
    "timed_operation",
]
