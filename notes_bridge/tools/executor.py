"""Исполнение MCP-инструментов через API заметок."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List
from urllib.parse import quote

from notes_bridge.core.errors import InvalidParameter, MissingParameter, ToolExecutionError, UnknownTool
from notes_bridge.services.backend import BackendError, BackendProxy
from notes_bridge.tools.registry import ToolCatalog, ToolResponse, ToolSpec
from notes_bridge.utils.payload import text_content

logger = logging.getLogger("notes_bridge.tools.executor")

ToolHandler = Callable[[BackendProxy, Dict[str, Any]], Awaitable[Any]]

_JSON_TYPES: Dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "object": dict,
    "array": list,
}


async def _handle_search_notes(backend: BackendProxy, arguments: Dict[str, Any]) -> Any:
    return await backend.call("GET", "/api/notes/search", query={"q": arguments["query"]})


async def _handle_get_note(backend: BackendProxy, arguments: Dict[str, Any]) -> Any:
    return await backend.call("GET", f"/api/notes/{quote(arguments['id'], safe='')}")


async def _handle_create_note(backend: BackendProxy, arguments: Dict[str, Any]) -> Any:
    body = {"title": arguments["title"], "content": arguments["content"]}
    return await backend.call("POST", "/api/notes", body)


TOOL_HANDLERS: Dict[str, ToolHandler] = {
    "search_notes": _handle_search_notes,
    "get_note": _handle_get_note,
    "create_note": _handle_create_note,
}


def _matches_type(value: Any, expected: str) -> bool:
    python_type = _JSON_TYPES.get(expected)
    if python_type is None:
        return True
    if isinstance(value, bool) and expected in {"integer", "number"}:
        return False
    return isinstance(value, python_type)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_arguments(spec: ToolSpec, arguments: Dict[str, Any]) -> None:
    """Проверить аргументы по схеме до любого сетевого вызова.

    Пустая или пробельная строка в обязательном параметре считается
    отсутствующим значением.
    """
    missing: List[str] = [
        name for name in spec.input_schema.required if _is_blank(arguments.get(name))
    ]
    if missing:
        raise MissingParameter(spec.name, missing)
    for name, schema in spec.input_schema.properties.items():
        if name not in arguments or arguments[name] is None:
            continue
        expected = schema.get("type") if isinstance(schema, dict) else None
        if isinstance(expected, str) and not _matches_type(arguments[name], expected):
            raise InvalidParameter(spec.name, name, expected)


class ToolExecutor:
    """Проверяет параметры, вызывает бэкенд и упаковывает результат."""

    def __init__(
        self,
        catalog: ToolCatalog,
        backend: BackendProxy,
        handlers: Dict[str, ToolHandler] | None = None,
    ) -> None:
        self._catalog = catalog
        self._backend = backend
        self._handlers = dict(TOOL_HANDLERS if handlers is None else handlers)

    async def execute_raw(self, tool_name: str, arguments: Dict[str, Any]) -> Any:
        spec = self._catalog.find(tool_name)
        handler = self._handlers.get(tool_name)
        if spec is None or handler is None:
            raise UnknownTool(tool_name, self._catalog.names())
        validate_arguments(spec, arguments)

        logger.info("Executing tool %s", tool_name)
        try:
            return await handler(self._backend, arguments)
        except BackendError as exc:
            logger.warning("Tool %s failed (%s): %s", tool_name, exc.kind.value, exc)
            raise ToolExecutionError(tool_name, exc) from exc

    async def execute(self, tool_name: str, arguments: Dict[str, Any]) -> ToolResponse:
        result = await self.execute_raw(tool_name, arguments)
        return text_content(result)


__all__ = [
    "TOOL_HANDLERS",
    "ToolExecutor",
    "ToolHandler",
    "validate_arguments",
]
