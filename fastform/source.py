import asyncio
import functools
import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import AsyncIterator, BinaryIO, Optional, Union

from .config import DEFAULT_CHUNK_SIZE, Rate, Throttle, ThrottleLike
from .errors import (
    ConfigurationError,
    FileNotFoundError,
    FileNotReadableError,
    RangeError,
    StreamReadError,
)
from .logging import get_logger
from .throttle import TokenBucket

PathType = Union[str, "os.PathLike[str]"]

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class SizeInfo:
    total: int
    readable: int


@dataclass(frozen=True)
class BandwidthInfo:
    burst_capacity: Rate
    sustained_rate: Rate
    max_speed_mbps: float
    chunk_size: int


class FileSource:
    """
    Rate limited, range limited byte source for one file.

    Everything about the file is checked when the source is built: existence,
    readability, throttle values and the byte range. ``open_stream()`` then
    reads ``start`` .. ``start + readable`` lazily, one chunk per pull, taking
    tokens from a fresh token bucket before each read.
    """

    def __init__(
        self,
        path: PathType,
        *,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
        throttle: ThrottleLike = None,
        start: int = 0,
        length: int = -1,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.path = os.fspath(path)
        self._filename = filename
        self._content_type = content_type
        self.start = start
        self.length = length
        self.chunk_size = chunk_size
        self.logger = logger or get_logger("source")
        self._validate_file()
        self.throttle = Throttle.from_value(throttle)
        self._total_size = self._validate_range()

    @classmethod
    def with_bandwidth_limit(
        cls,
        path: PathType,
        max_bytes_per_second: int,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        filename: Optional[str] = None,
    ) -> "FileSource":
        return cls(
            path,
            filename=filename,
            throttle=Throttle.bandwidth_limit(max_bytes_per_second),
            chunk_size=chunk_size,
        )

    @classmethod
    def partial(
        cls,
        path: PathType,
        start: int,
        length: int,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> "FileSource":
        return cls(path, start=start, length=length, chunk_size=chunk_size)

    def _validate_file(self) -> None:
        if not os.path.isfile(self.path):
            raise FileNotFoundError(f"File not found: {self.path}")
        if not os.access(self.path, os.R_OK):
            raise FileNotReadableError(f"File is not readable: {self.path}")

    def _validate_range(self) -> int:
        if self.chunk_size <= 0:
            raise ConfigurationError("Chunk size must be positive")
        if self.start < 0:
            raise ConfigurationError("Start position must be non-negative")
        if self.length < -1:
            raise ConfigurationError("Read length must be -1 (to end of file) or non-negative")
        file_size = os.path.getsize(self.path)
        if self.start >= file_size:
            raise RangeError(f"Start position {self.start} exceeds file size {file_size}")
        if self.length > 0 and self.start + self.length > file_size:
            raise RangeError(
                f"Read length {self.length} from {self.start} exceeds file size {file_size}"
            )
        return file_size

    @property
    def filename(self) -> str:
        return self._filename or os.path.basename(self.path)

    @property
    def content_type(self) -> str:
        if self._content_type:
            return self._content_type
        return mimetypes.guess_type(self.path)[0] or DEFAULT_CONTENT_TYPE

    def size_info(self) -> SizeInfo:
        total = self._total_size
        available = total - self.start
        readable = min(self.length, available) if self.length > 0 else available
        return SizeInfo(total=total, readable=readable)

    def bandwidth_info(self) -> BandwidthInfo:
        return BandwidthInfo(
            burst_capacity=self.throttle.burst_capacity,
            sustained_rate=self.throttle.sustained_rate,
            max_speed_mbps=self.throttle.max_speed_mbps,
            chunk_size=self.chunk_size,
        )

    def header_bytes(self) -> bytes:
        """
        Disposition continuation and part headers, up to and including the blank line.

        Content-Length is the number of bytes the stream will deliver, which is
        the range length rather than the whole file when a range is set.
        """
        headers = (
            f'; filename="{self.filename}"\r\n'
            f"Content-Type: {self.content_type}\r\n"
            f"Content-Length: {self.size_info().readable}\r\n"
            "\r\n"
        )
        return headers.encode("utf-8")

    def open_stream(self) -> AsyncIterator[bytes]:
        async def generator() -> AsyncIterator[bytes]:
            remaining = self.size_info().readable
            bucket = TokenBucket.from_throttle(self.throttle, logger=self.logger)
            try:
                reader: BinaryIO = open(self.path, "rb")
            except OSError as exc:
                raise StreamReadError(f"Failed to open {self.path}: {exc}") from exc
            try:
                if self.start:
                    await _to_thread(reader.seek, self.start)
                while remaining > 0:
                    request = min(self.chunk_size, remaining)
                    await bucket.acquire(request)
                    try:
                        chunk = await _to_thread(reader.read, request)
                    except OSError as exc:
                        raise StreamReadError(f"Failed to read {self.path}: {exc}") from exc
                    if not chunk:
                        self.logger.warning(
                            "%s ended %d bytes short of its advertised length", self.path, remaining
                        )
                        break
                    remaining -= len(chunk)
                    yield chunk
            finally:
                reader.close()

        return generator()

    def __repr__(self) -> str:
        info = self.size_info()
        return f"<FileSource {self.path!r} start={self.start} readable={info.readable}>"


async def _to_thread(func, *args):
    if hasattr(asyncio, "to_thread"):
        return await asyncio.to_thread(func, *args)
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args))


__all__ = ["BandwidthInfo", "DEFAULT_CONTENT_TYPE", "FileSource", "PathType", "SizeInfo"]
