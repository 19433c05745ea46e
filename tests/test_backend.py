from __future__ import annotations

import asyncio

import httpx
import pytest

from notes_bridge.core.config import BridgeConfig
from notes_bridge.services.backend import (
    BackendConnectionError,
    BackendFailureKind,
    BackendHttpError,
    BackendProxy,
)


def _proxy(handler, url: str = "http://notes.test:3001") -> BackendProxy:
    return BackendProxy(BridgeConfig(notes_api_url=url), transport=httpx.MockTransport(handler))


def test_call_returns_parsed_json() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["q"] = request.url.params["q"]
        seen["path"] = request.url.path
        return httpx.Response(200, json=[{"id": "1"}])

    result = asyncio.run(_proxy(handler).call("GET", "/api/notes/search", query={"q": "a b&c"}))

    assert result == [{"id": "1"}]
    assert seen["q"] == "a b&c"
    assert seen["path"] == "/api/notes/search"


def test_base_url_trailing_slash_is_ignored() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        return httpx.Response(200, json={})

    proxy = _proxy(handler, url="http://notes.test:3001/")
    asyncio.run(proxy.call("GET", "/api/notes/1"))

    assert proxy.base_url == "http://notes.test:3001"
    assert seen["url"] == "http://notes.test:3001/api/notes/1"


def test_post_sends_json_body() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = request.content
        seen["content_type"] = request.headers["content-type"]
        return httpx.Response(201, json={"id": "x"})

    result = asyncio.run(_proxy(handler).call("POST", "/api/notes", {"title": "T", "content": "C"}))

    assert result == {"id": "x"}
    assert b'"title"' in seen["body"]
    assert seen["content_type"] == "application/json"


def test_connection_refused_names_url() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

    with pytest.raises(BackendConnectionError) as excinfo:
        asyncio.run(_proxy(handler).call("GET", "/api/notes/1"))

    assert excinfo.value.kind is BackendFailureKind.REFUSED
    assert "http://notes.test:3001" in str(excinfo.value)
    assert excinfo.value.url == "http://notes.test:3001/api/notes/1"


def test_other_transport_error_keeps_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.RemoteProtocolError("server hung up", request=request)

    with pytest.raises(BackendConnectionError) as excinfo:
        asyncio.run(_proxy(handler).call("GET", "/api/notes/1"))

    assert excinfo.value.kind is BackendFailureKind.OTHER
    assert str(excinfo.value) == "server hung up"


def test_http_error_uses_backend_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": 'Search query parameter "q" is required'})

    with pytest.raises(BackendHttpError) as excinfo:
        asyncio.run(_proxy(handler).call("GET", "/api/notes/search"))

    assert excinfo.value.status_code == 400
    assert excinfo.value.kind is BackendFailureKind.HTTP_STATUS
    assert str(excinfo.value) == 'Search query parameter "q" is required'


def test_http_error_falls_back_to_reason_phrase() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="<html>boom</html>")

    with pytest.raises(BackendHttpError) as excinfo:
        asyncio.run(_proxy(handler).call("GET", "/api/notes"))

    assert str(excinfo.value) == "Internal Server Error"


def test_not_found_kind() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Note not found"})

    with pytest.raises(BackendHttpError) as excinfo:
        asyncio.run(_proxy(handler).call("GET", "/api/notes/404"))

    assert excinfo.value.kind is BackendFailureKind.NOT_FOUND


def test_empty_and_non_json_bodies() -> None:
    def empty(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204)

    def plain(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="ok")

    assert asyncio.run(_proxy(empty).call("DELETE", "/api/notes/1")) is None
    assert asyncio.run(_proxy(plain).call("GET", "/health")) == "ok"
