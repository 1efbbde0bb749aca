import logging
import ssl
import time
from typing import Any, Dict, Optional, Union
from urllib.parse import urljoin

import fastform

from .config import Timeout
from .connection import AsyncConnection
from .encoder import MultipartEncoder
from .logging import get_logger
from .request import BodyType, Request
from .response import Response


class AsyncClient:
    """
    Minimal async HTTP/1.1 client for streaming uploads.

    Every request uses its own connection, which is closed once the response
    has been read. Request bodies are never retried: a multipart body is
    produced once, so a failed upload needs a fresh encoder.

    Example:
        form = MultipartEncoder({"name": "John"})
        form.add_file("avatar", "avatar.png")
        async with AsyncClient(base_url="https://api.example.com") as client:
            resp = await client.post_form_data("/upload", form)
            resp.raise_for_status()
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Union[Timeout, float, None] = None,
        logger: Optional[logging.Logger] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = Timeout.from_value(timeout)
        self.logger = logger or get_logger("client")
        self.user_agent = user_agent or "fastform/{}".format(fastform.__version__)

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        content: BodyType = None,
        timeout: Union[Timeout, float, None] = None,
        verify: bool = True,
        ssl_context: Optional[ssl.SSLContext] = None,
    ) -> Response:
        full_url = urljoin(self.base_url, url) if self.base_url else url
        hdrs = dict(headers or {})
        if "user-agent" not in {k.lower() for k in hdrs}:
            hdrs["User-Agent"] = self.user_agent
        req = Request(
            method=method.upper(),
            url=full_url,
            headers=hdrs,
            content=content,
            timeout=timeout if timeout is not None else self.timeout,
        )
        conn = AsyncConnection(
            (req.host, req.port),
            use_ssl=req.scheme == "https",
            ssl_context=ssl_context,
            connect_timeout=req.timeout.connect,
            read_timeout=req.timeout.read,
            write_timeout=req.timeout.write,
            verify=verify,
        )
        start_time = time.monotonic()
        try:
            resp = await conn.send_request(req)
        finally:
            await conn.close()
        resp.elapsed = time.monotonic() - start_time
        self.logger.debug("%s %s -> %d in %.3fs", req.method, full_url, resp.status_code, resp.elapsed)
        return resp

    async def post(self, url: str, content: BodyType = None, **kwargs: Any) -> Response:
        return await self.request("POST", url, content=content, **kwargs)

    async def post_form_data(
        self,
        url: str,
        form: MultipartEncoder,
        *,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> Response:
        """
        Upload ``form`` as the request body.

        The form's exact size is sent as Content-Length, so the body goes out
        without chunked transfer coding.
        """
        hdrs = dict(headers or {})
        hdrs.update(form.headers())
        hdrs["Content-Length"] = str(form.content_length())
        resp = await self.request("POST", url, headers=hdrs, content=form.iter_bytes(), **kwargs)
        self.logger.info("Uploaded %d form fields to %s: HTTP %d", len(form), url, resp.status_code)
        return resp

    async def aclose(self) -> None:
        # Connections do not outlive a request; nothing is pooled.
        return None

    async def __aenter__(self) -> "AsyncClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


__all__ = ["AsyncClient"]
