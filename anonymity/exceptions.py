"""Exceptions for the anonymity service"""

from typing import Optional


class AnonymityError(Exception):
    """Base exception for the anonymity service"""
    pass


class StoreUnavailableError(AnonymityError):
    """Raised when the shared store cannot be read or written"""

    def __init__(self, operation: str, key: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.key = key
        self.cause = cause
        message = f"Shared store unavailable during {operation} on '{key}'"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ConfigurationError(AnonymityError):
    """Raised when service configuration is invalid"""
    pass


class BatchTooLargeError(AnonymityError):
    """Raised when an event batch exceeds the configured maximum"""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Batch of {size} events exceeds limit of {limit}")
