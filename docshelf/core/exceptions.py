"""Custom exceptions for the application."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of failure kinds signalled by the document store."""

    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    BAD_REQUEST = "BAD_REQUEST"


class DocumentStoreError(Exception):
    """Base class for typed document store failures."""

    kind: ErrorKind = ErrorKind.BAD_REQUEST
    default_message = "Bad request"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class DocumentNotFoundError(DocumentStoreError):
    """Raised when a referenced document or version does not exist."""

    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class ForbiddenError(DocumentStoreError):
    """Raised when the caller's token does not match the resource owner."""

    kind = ErrorKind.FORBIDDEN
    default_message = "Forbidden"


class FileTooLargeError(DocumentStoreError):
    """Raised when content exceeds the configured size limit."""

    kind = ErrorKind.FILE_TOO_LARGE
    default_message = "file exceeds size limit"


class ValidationError(DocumentStoreError):
    """Raised when required input is missing or has the wrong type."""

    kind = ErrorKind.BAD_REQUEST


class KVStoreError(Exception):
    """Raised when backing store operations fail."""

    pass
