import json
import threading
from contextlib import contextmanager
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from fastform import AsyncClient, MultipartEncoder
from fastform.errors import HTTPStatusError, StreamReadError
from fastform import source as source_module


class UploadHandler(BaseHTTPRequestHandler):
    received = []

    def do_POST(self):
        length = int(self.headers.get("Content-Length", "0"))
        body = self.rfile.read(length)
        UploadHandler.received.append(
            {
                "path": self.path,
                "content_type": self.headers.get("Content-Type"),
                "content_length": length,
                "body": body,
            }
        )
        if self.path == "/reject":
            payload = b'{"error": "too large"}'
            self.send_response(413)
        else:
            payload = json.dumps({"received": len(body)}).encode("utf-8")
            self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format, *args):  # pragma: no cover
        return


@contextmanager
def run_server():
    UploadHandler.received = []
    server = HTTPServer(("127.0.0.1", 0), UploadHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    base_url = f"http://127.0.0.1:{server.server_address[1]}"
    try:
        yield base_url
    finally:
        server.shutdown()
        server.server_close()
        thread.join()


@pytest.fixture
def base_url():
    with run_server() as b:
        yield b


@pytest.mark.asyncio
async def test_post_form_data_uploads_exact_body(base_url, make_file):
    avatar = make_file("avatar.txt", b"Test file content for testing.\n")
    form = MultipartEncoder({"name": "John", "tags": ["a", "b"]}, boundary="upload-boundary")
    form.add_file("avatar", avatar, throttle=(16, 1024 * 1024), chunk_size=8)
    form.add_multi_file("docs", [avatar, avatar])
    expected_length = form.content_length()

    async with AsyncClient(base_url=base_url, timeout=5) as client:
        resp = await client.post_form_data("/upload", form)

    assert resp.status_code == 200
    assert resp.ok
    assert resp.json() == {"received": expected_length}
    [upload] = UploadHandler.received
    assert upload["content_type"] == "multipart/form-data; boundary=upload-boundary"
    assert upload["content_length"] == expected_length
    body = upload["body"]
    assert body.startswith(
        b'--upload-boundary\r\nContent-Disposition: form-data; name="name"\r\n\r\nJohn\r\n'
    )
    assert body.count(b'name="docs[]"; filename="avatar.txt"') == 2
    assert body.endswith(b"--upload-boundary--\r\n")


@pytest.mark.asyncio
async def test_error_status_is_reported(base_url):
    form = MultipartEncoder({"name": "John"})
    async with AsyncClient(base_url=base_url, timeout=5) as client:
        resp = await client.post_form_data("/reject", form)
    assert resp.status_code == 413
    with pytest.raises(HTTPStatusError):
        resp.raise_for_status()


@pytest.mark.asyncio
async def test_plain_post(base_url):
    async with AsyncClient(base_url=base_url, timeout=5) as client:
        resp = await client.post("/plain", content=b"hello")
    assert resp.json() == {"received": 5}
    assert UploadHandler.received[0]["body"] == b"hello"


class FailingReader:
    def __init__(self) -> None:
        self.closed = False

    def seek(self, offset: int) -> int:
        return offset

    def read(self, size: int) -> bytes:
        raise OSError("device went away")

    def close(self) -> None:
        self.closed = True


@pytest.mark.asyncio
async def test_read_error_aborts_upload(base_url, make_file, monkeypatch):
    path = make_file("data.bin", b"x" * 100)
    form = MultipartEncoder({"name": "John"})
    form.add_file("blob", path)
    reader = FailingReader()
    monkeypatch.setattr(source_module, "open", lambda *args: reader, raising=False)
    async with AsyncClient(base_url=base_url, timeout=5) as client:
        with pytest.raises(StreamReadError):
            await client.post_form_data("/upload", form)
    assert reader.closed
