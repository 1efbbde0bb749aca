import builtins
from typing import Optional


class FastFormError(Exception):
    """Base exception for the fastform package."""


class ConfigurationError(FastFormError, ValueError):
    """Raised when a field, file or throttle is configured with invalid values."""


class FileNotFoundError(FastFormError, builtins.FileNotFoundError):
    """Raised when a file to upload does not exist or is not a regular file."""


class FileNotReadableError(FastFormError, PermissionError):
    """Raised when a file to upload exists but cannot be read."""


class RangeError(FastFormError, ValueError, IndexError):
    """Raised when a byte range or a multi-file index is out of bounds."""


class StreamReadError(FastFormError, OSError):
    """Raised when reading file bytes fails while the body is streaming."""


class BoundaryGenerationError(FastFormError):
    """Raised when the secure random source cannot produce a boundary."""


class StreamConsumedError(FastFormError, RuntimeError):
    """Raised when a single-shot body stream is requested or mutated twice."""


class RequestError(FastFormError):
    """Raised when request building or sending fails."""


class ResponseError(FastFormError):
    """Raised when response parsing fails."""


class HTTPStatusError(ResponseError):
    """Raised when a response has an HTTP error status (4xx or 5xx)."""

    def __init__(self, status_code: int, message: str, response: Optional[object] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response
