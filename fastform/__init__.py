from .client import AsyncClient
from .config import DEFAULT_CHUNK_SIZE, Throttle, Timeout
from .encoder import EncoderState, MultipartEncoder
from .fields import FileField, MultiFileField, TextField
from .flatten import flatten
from .multi import MultiFileSource
from .response import Response
from .request import Request
from .source import FileSource, SizeInfo
from .throttle import TokenBucket
from .errors import (
    FastFormError,
    ConfigurationError,
    FileNotFoundError,
    FileNotReadableError,
    RangeError,
    StreamReadError,
    BoundaryGenerationError,
    StreamConsumedError,
    RequestError,
    ResponseError,
    HTTPStatusError,
)

__all__ = [
    "AsyncClient",
    "MultipartEncoder",
    "EncoderState",
    "FileSource",
    "MultiFileSource",
    "SizeInfo",
    "TextField",
    "FileField",
    "MultiFileField",
    "flatten",
    "Throttle",
    "TokenBucket",
    "Timeout",
    "DEFAULT_CHUNK_SIZE",
    "Response",
    "Request",
    "FastFormError",
    "ConfigurationError",
    "FileNotFoundError",
    "FileNotReadableError",
    "RangeError",
    "StreamReadError",
    "BoundaryGenerationError",
    "StreamConsumedError",
    "RequestError",
    "ResponseError",
    "HTTPStatusError",
]


__version__ = "0.1.0"
