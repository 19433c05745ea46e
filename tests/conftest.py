from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from notes_bridge.core.config import BridgeConfig
from notes_bridge.core.engine import ProtocolEngine, create_engine

API_URL = "http://notes.test:3001"


class StubNotesApi:
    """Заглушка API заметок для httpx.MockTransport."""

    def __init__(self) -> None:
        self.notes: Dict[str, Dict[str, Any]] = {
            "1": {
                "id": "1",
                "title": "Intro scene",
                "content": "Opening credits notes",
                "startTime": 0,
                "endTime": 12.5,
                "createdAt": "2024-01-01T00:00:00.000Z",
                "updatedAt": "2024-01-01T00:00:00.000Z",
            },
            "2": {
                "id": "2",
                "title": "Chase",
                "content": "Car chase at the harbour",
                "startTime": 60,
                "endTime": 95,
                "createdAt": "2024-01-02T00:00:00.000Z",
                "updatedAt": "2024-01-02T00:00:00.000Z",
            },
        }
        self.requests: List[httpx.Request] = []
        self.search_delay = 0.0
        self.fail_with: Optional[Exception] = None

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        path = request.url.path

        if request.method == "GET" and path == "/api/notes/search":
            if self.search_delay:
                await asyncio.sleep(self.search_delay)
            query = (request.url.params.get("q") or "").lower()
            matches = [
                note
                for note in self.notes.values()
                if query in note["title"].lower() or query in note["content"].lower()
            ]
            return httpx.Response(200, json=matches)

        if request.method == "GET" and path.startswith("/api/notes/"):
            note = self.notes.get(path[len("/api/notes/"):])
            if note is None:
                return httpx.Response(404, json={"message": "Note not found"})
            return httpx.Response(200, json=note)

        if request.method == "POST" and path == "/api/notes":
            body = json.loads(request.content)
            note = {
                "id": "x",
                "title": body["title"],
                "content": body["content"],
                "createdAt": "2024-03-01T10:00:00.000Z",
                "updatedAt": "2024-03-01T10:00:00.000Z",
            }
            return httpx.Response(201, json=note)

        return httpx.Response(404, json={"message": "Route not found"})


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "NOTES_API_URL",
        "NOTES_API_TIMEOUT",
        "MCP_ENABLE_LEGACY",
        "MCP_INTERACTIVE",
        "MCP_RECOVER_PARSE_ERROR_IDS",
        "LOG_LEVEL",
        "APP_VERSION",
        "MCP_HTTP_HOST",
        "MCP_HTTP_PORT",
        "LANGSMITH_TRACING",
        "LANGSMITH_PROJECT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def stub_api() -> StubNotesApi:
    return StubNotesApi()


@pytest.fixture
def config() -> BridgeConfig:
    return BridgeConfig(notes_api_url=API_URL)


@pytest.fixture
def engine(config: BridgeConfig, stub_api: StubNotesApi) -> ProtocolEngine:
    return create_engine(config, transport=httpx.MockTransport(stub_api))


def rpc(engine: ProtocolEngine, payload: Any) -> Optional[Dict[str, Any]]:
    line = payload if isinstance(payload, str) else json.dumps(payload)
    return asyncio.run(engine.handle_line(line))


@pytest.fixture
def send():
    return rpc
