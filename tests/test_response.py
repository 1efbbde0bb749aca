import pytest

from fastform.errors import HTTPStatusError, ResponseError
from fastform.response import Response


def test_header_lookup_ignores_case():
    resp = Response(200, {"Content-Type": "application/json"}, b"{}")
    assert resp.header("content-type") == "application/json"
    assert resp.header("X-Missing") is None


def test_text_uses_declared_charset():
    resp = Response(200, {"content-type": "text/plain; charset=latin-1"}, "café".encode("latin-1"))
    assert resp.text() == "café"


def test_text_falls_back_to_utf8_with_replacement():
    resp = Response(200, {"Content-Type": "text/plain; charset=no-such-codec"}, b"ok\xff")
    assert resp.text() == "ok�"


def test_json_errors_are_response_errors():
    assert Response(200, {}, b'{"received": 3}').json() == {"received": 3}
    with pytest.raises(ResponseError):
        Response(200, {}, b"").json()
    with pytest.raises(ResponseError):
        Response(200, {}, b"<html>").json()


def test_raise_for_status():
    Response(201, {}, b"").raise_for_status()
    resp = Response(413, {}, b"", reason="Payload Too Large")
    assert not resp.ok
    with pytest.raises(HTTPStatusError) as exc_info:
        resp.raise_for_status()
    assert exc_info.value.status_code == 413
    assert "Payload Too Large" in str(exc_info.value)
