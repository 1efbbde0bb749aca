import json
from dataclasses import dataclass
from email.message import Message
from typing import Any, Dict, Optional

from .errors import HTTPStatusError, ResponseError
from .request import Request


@dataclass
class Response:
    """What the server answered to an upload. The body is read in full."""

    status_code: int
    headers: Dict[str, str]
    content: bytes = b""
    reason: Optional[str] = None
    request: Optional[Request] = None
    elapsed: float = 0.0

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return default

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def text(self) -> str:
        message = Message()
        message["Content-Type"] = self.header("Content-Type", "text/plain")
        charset = message.get_content_charset() or "utf-8"
        try:
            return self.content.decode(charset)
        except (LookupError, UnicodeDecodeError):
            return self.content.decode("utf-8", errors="replace")

    def json(self) -> Any:
        try:
            return json.loads(self.text())
        except ValueError as exc:
            raise ResponseError(f"Response body is not JSON: {exc}") from exc

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise HTTPStatusError(
                self.status_code, f"Upload failed with HTTP {self.status_code} {self.reason or ''}".rstrip(), self
            )
