import asyncio
import ssl
from typing import AsyncIterator, Optional, Tuple

import h11

from .errors import FastFormError, RequestError, ResponseError
from .request import Request
from .response import Response

_READ_SIZE = 65536


class AsyncConnection:
    """
    Async HTTP/1.1 connection built on asyncio streams and h11.

    The request body is written one chunk at a time and the writer is drained
    after every chunk, so a slow peer holds back the body producer.
    """

    def __init__(
        self,
        addr: Tuple[str, int],
        use_ssl: bool = False,
        ssl_context: Optional[ssl.SSLContext] = None,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        write_timeout: Optional[float] = None,
        verify: bool = True,
    ) -> None:
        self.addr = addr
        self.use_ssl = use_ssl
        if use_ssl:
            if ssl_context is not None:
                self.ssl_context = ssl_context
            else:
                self.ssl_context = ssl.create_default_context()
                if not verify:
                    self.ssl_context.check_hostname = False
                    self.ssl_context.verify_mode = ssl.CERT_NONE
        else:
            self.ssl_context = None
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.reader: asyncio.StreamReader
        self.writer: asyncio.StreamWriter
        self.h11_conn = h11.Connection(h11.CLIENT)
        self.closed = False
        self._connected = False

    async def connect(self) -> None:
        if self._connected:
            return
        self.reader, self.writer = await asyncio.wait_for(
            asyncio.open_connection(self.addr[0], self.addr[1], ssl=self.ssl_context),
            timeout=self.connect_timeout,
        )
        self._connected = True

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._connected:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except (ConnectionError, ssl.SSLError):
                pass

    async def _send_event(self, event: h11.Event) -> None:
        data = self.h11_conn.send(event)
        if data:
            self.writer.write(data)
            await asyncio.wait_for(self.writer.drain(), timeout=self.write_timeout)

    async def _send_body(self, body_iter: AsyncIterator[bytes]) -> None:
        try:
            async for part in body_iter:
                if not part:
                    continue
                if isinstance(part, memoryview):
                    part = part.tobytes()
                await self._send_event(h11.Data(data=part))
        finally:
            aclose = getattr(body_iter, "aclose", None)
            if aclose is not None:
                await aclose()

    async def send_request(self, request: Request) -> Response:
        if self.closed:
            raise RequestError("Connection already closed")
        body_iter = request.aiter_body()
        try:
            await self.connect()
            await self._send_event(
                h11.Request(
                    method=request.method.encode("ascii"),
                    target=request.target.encode("ascii"),
                    headers=[(k.encode("ascii"), v.encode("latin-1")) for k, v in request.headers.items()],
                )
            )
            if body_iter is not None:
                await self._send_body(body_iter)
            else:
                body_bytes = request.content_bytes()
                if body_bytes:
                    await self._send_event(h11.Data(data=body_bytes))
            await self._send_event(h11.EndOfMessage())
        except FastFormError:
            await self._abort(body_iter)
            raise
        except (OSError, asyncio.TimeoutError, h11.LocalProtocolError) as exc:
            await self._abort(body_iter)
            raise RequestError(f"Failed to send request: {exc}") from exc

        return await self._read_response(request)

    async def _abort(self, body_iter: Optional[AsyncIterator[bytes]]) -> None:
        aclose = getattr(body_iter, "aclose", None)
        if aclose is not None:
            await aclose()
        await self.close()

    async def _read_event(self) -> h11.Event:
        while True:
            event = self.h11_conn.next_event()
            if event is h11.NEED_DATA:
                chunk = await asyncio.wait_for(self.reader.read(_READ_SIZE), timeout=self.read_timeout)
                if not chunk:
                    raise ResponseError("Connection closed by peer")
                self.h11_conn.receive_data(chunk)
                continue
            return event

    async def _read_response(self, request: Request) -> Response:
        body_chunks = []
        try:
            while True:
                event = await self._read_event()
                if isinstance(event, h11.Response):
                    break
                if isinstance(event, h11.InformationalResponse):
                    continue
                if event is h11.ConnectionClosed:
                    raise ResponseError("Connection closed before response")

            while True:
                body_event = await self._read_event()
                if isinstance(body_event, h11.Data):
                    body_chunks.append(body_event.data)
                elif isinstance(body_event, h11.EndOfMessage) or body_event is h11.ConnectionClosed:
                    break
        except h11.RemoteProtocolError as exc:
            await self.close()
            raise ResponseError(f"Malformed response: {exc}") from exc
        except asyncio.TimeoutError as exc:
            await self.close()
            raise ResponseError("Timed out reading response") from exc

        return Response(
            status_code=event.status_code,
            headers={k.decode("ascii"): v.decode("latin-1") for k, v in event.headers},
            content=b"".join(body_chunks),
            reason=event.reason.decode("ascii", errors="replace"),
            request=request,
        )
