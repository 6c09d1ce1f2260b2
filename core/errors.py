"""
Daxue Reader - Error Types
Exception hierarchy shared by the server and the reader client
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Categories of failure, used for logging and response bodies."""
    CONFIGURATION = "configuration"  # Missing credential
    UPSTREAM = "upstream"            # Non-2xx or malformed generation API response
    STORAGE = "storage"              # Unreadable/corrupt/unwritable analytics document
    NETWORK = "network"              # Client-side transport failure


class ReaderError(Exception):
    """Base class for all reader errors."""
    kind: ErrorKind = ErrorKind.UPSTREAM

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        kind: Optional[ErrorKind] = None
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        if kind is not None:
            self.kind = kind


class ConfigurationError(ReaderError):
    """A required setting (the API key) is missing."""
    kind = ErrorKind.CONFIGURATION


class InterpretationError(ReaderError):
    """
    The interpretation flow failed.

    The message is user-visible and shown in the error panel
    next to the retry affordance.
    """
    kind = ErrorKind.UPSTREAM


class AnalyticsStorageError(ReaderError):
    """The analytics document could not be read or written."""
    kind = ErrorKind.STORAGE
