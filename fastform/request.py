from collections.abc import AsyncIterable
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Optional, Union
from urllib.parse import urlparse

from .config import Timeout

BodyType = Optional[Union[bytes, bytearray, memoryview, str, AsyncIterable]]


@dataclass
class Request:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    content: BodyType = None
    timeout: Timeout = field(default_factory=Timeout)

    def __post_init__(self) -> None:
        self.timeout = Timeout.from_value(self.timeout)
        parsed = urlparse(self.url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"Invalid URL: {self.url}")
        self.scheme = parsed.scheme
        self.host = parsed.hostname
        self.port = parsed.port or (443 if parsed.scheme == "https" else 80)
        self.target = parsed.path or "/"
        if parsed.query:
            self.target += f"?{parsed.query}"
        self._normalize_headers()

    def _normalize_headers(self) -> None:
        lower_keys = {k.lower() for k in self.headers}
        if "host" not in lower_keys:
            host_hdr = self.host
            if self.port not in (80, 443):
                host_hdr = f"{host_hdr}:{self.port}"
            self.headers["Host"] = host_hdr
        if self.is_streaming:
            if "content-length" not in lower_keys and "transfer-encoding" not in lower_keys:
                # Length unknown: h11 frames the body with chunked coding.
                self.headers["Transfer-Encoding"] = "chunked"
        elif "content-length" not in lower_keys:
            self.headers["Content-Length"] = str(len(self.content_bytes()))

    @property
    def is_streaming(self) -> bool:
        if self.content is None or isinstance(self.content, (bytes, bytearray, memoryview, str)):
            return False
        return isinstance(self.content, AsyncIterable)

    def content_bytes(self) -> bytes:
        if self.content is None:
            return b""
        if isinstance(self.content, (bytes, bytearray, memoryview)):
            return bytes(self.content)
        if isinstance(self.content, str):
            return self.content.encode("utf-8")
        raise TypeError("Streaming content has no byte representation")

    def aiter_body(self) -> Optional[AsyncIterator[bytes]]:
        if not self.is_streaming:
            return None
        return self.content.__aiter__()  # type: ignore[union-attr]
