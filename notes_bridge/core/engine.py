"""Движок JSON-RPC 2.0 для MCP-моста.

Движок ничего не знает о транспорте: на вход получает строку (или уже
разобранный JSON), на выход отдаёт словарь ответа либо ``None``, если
отвечать не нужно (уведомление или ошибка без восстановимого id).

Маршрутизация выполняется по таблице ``method → обработчик``, которая
строится один раз в конструкторе.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from notes_bridge.core.config import SERVER_CAPABILITIES, BridgeConfig
from notes_bridge.core.errors import (
    BridgeError,
    ExecutionError,
    InvalidParams,
    InvalidRequest,
    MethodNotFound,
    ParseError,
    ToolExecutionError,
)
from notes_bridge.models.json_rpc import (
    InitializeParams,
    JsonRpcError,
    JsonRpcErrorObj,
    JsonRpcRequest,
    JsonRpcResponse,
    LegacyExecuteParams,
    ToolCallParams,
)
from notes_bridge.services.backend import BackendError, BackendFailureKind, BackendProxy
from notes_bridge.services.langsmith_tracing import LangSmithTracing
from notes_bridge.tools.executor import ToolExecutor
from notes_bridge.tools.registry import ToolCatalog, build_default_catalog

logger = logging.getLogger("notes_bridge.core.engine")

NOTIFICATION_METHODS = frozenset({"initialized", "notifications/initialized"})

Handler = Callable[[JsonRpcRequest], Awaitable[Any]]
ParamsModel = TypeVar("ParamsModel", bound=BaseModel)

_ID_PATTERN = re.compile(r'"id"\s*:\s*("(?:[^"\\]|\\.)*"|-?\d+(?:\.\d+)?)')


def error_response(exc: BridgeError, request_id: Any) -> Dict[str, Any]:
    return JsonRpcError(
        id=request_id,
        error=JsonRpcErrorObj(code=exc.code, message=exc.message, data=exc.data),
    ).as_dict()


def _validation_summary(exc: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
        for err in exc.errors()
    ]


def recover_request_id(text: str) -> Optional[Any]:
    """Попытаться вытащить id из строки, которая не разбирается как JSON."""
    match = _ID_PATTERN.search(text)
    if match is None:
        return None
    try:
        return json.loads(match.group(1))
    except json.JSONDecodeError:
        return None


def describe_backend_failure(tool: str, exc: BackendError, base_url: str) -> ExecutionError:
    """Перевести сбой бэкенда в ошибку -32603 с понятным сообщением."""
    data: Dict[str, Any] = {"tool": tool, "kind": exc.kind.value, "url": exc.url}
    status = getattr(exc, "status_code", None)
    if status is not None:
        data["status"] = status

    if exc.kind is BackendFailureKind.REFUSED:
        message = f"Cannot connect to notes API at {base_url}. Is the notes server running?"
    elif exc.kind in (BackendFailureKind.NOT_FOUND, BackendFailureKind.HTTP_STATUS):
        message = f"Notes API error ({status}): {exc.message}"
    else:
        message = f"Notes API request failed: {exc.message}"
    return ExecutionError(message, data=data)


class ProtocolEngine:
    """Разбор конвертов, классификация запрос/уведомление и диспетчеризация."""

    def __init__(
        self,
        config: BridgeConfig,
        catalog: ToolCatalog,
        executor: ToolExecutor,
        *,
        tracing: Optional[LangSmithTracing] = None,
        backend: Optional[BackendProxy] = None,
    ) -> None:
        self._config = config
        self._catalog = catalog
        self._executor = executor
        self._tracing = tracing or LangSmithTracing(config)
        self._backend = backend
        self._handlers: Dict[str, Handler] = self._build_dispatch_table()

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def catalog(self) -> ToolCatalog:
        return self._catalog

    @property
    def executor(self) -> ToolExecutor:
        return self._executor

    @property
    def methods(self) -> frozenset[str]:
        return frozenset(self._handlers)

    def _build_dispatch_table(self) -> Dict[str, Handler]:
        table: Dict[str, Handler] = {
            "initialize": self._handle_initialize,
            "initialized": self._handle_initialized,
            "notifications/initialized": self._handle_initialized,
            "ping": self._handle_ping,
            "tools/list": self._handle_tools_list,
            "tools/call": self._handle_tools_call,
        }
        if self._config.enable_legacy_methods:
            table["mcp/list_tools"] = self._handle_legacy_list_tools
            table["mcp/execute"] = self._handle_legacy_execute
        return table

    async def aclose(self) -> None:
        if self._backend is not None:
            await self._backend.aclose()

    # --- разбор входа ---

    async def handle_line(self, line: str) -> Optional[Dict[str, Any]]:
        text = line.strip()
        if not text:
            return None
        try:
            message = json.loads(text)
        except json.JSONDecodeError as exc:
            return self._handle_parse_error(text, exc)
        return await self.handle_message(message)

    def _handle_parse_error(self, text: str, exc: json.JSONDecodeError) -> Optional[Dict[str, Any]]:
        if self._config.recover_parse_error_ids:
            request_id = recover_request_id(text)
            if request_id is not None:
                logger.warning("Parse error for request id=%r: %s", request_id, exc)
                return error_response(ParseError(data={"detail": str(exc)}), request_id)
        logger.warning("Dropping unparsable line (no recoverable id): %s", exc)
        return None

    async def handle_message(self, message: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(message, dict):
            logger.warning("Dropping JSON-RPC message that is not an object (%s)", type(message).__name__)
            return None

        try:
            request = JsonRpcRequest.model_validate(message)
        except ValidationError as exc:
            details = _validation_summary(exc)
            if "id" not in message:
                logger.warning("Dropping invalid notification: %s", details)
                return None
            logger.warning("Invalid request id=%r: %s", message.get("id"), details)
            return error_response(InvalidRequest(data=details), message.get("id"))

        notification = not request.has_id or request.method in NOTIFICATION_METHODS
        logger.debug("<- %s id=%r notification=%s", request.method, request.id, notification)

        try:
            result = await self._dispatch(request)
        except BridgeError as exc:
            if notification:
                logger.warning("Notification %s failed: %s", request.method, exc)
                return None
            logger.info("Request %s id=%r failed with %s: %s", request.method, request.id, exc.code, exc)
            return error_response(exc, request.id)
        except Exception as exc:
            logger.exception("Unhandled error while handling %s", request.method)
            if notification:
                return None
            return error_response(ExecutionError(f"Internal error: {exc}"), request.id)

        if notification:
            return None
        return JsonRpcResponse(id=request.id, result=result).model_dump()

    async def _dispatch(self, request: JsonRpcRequest) -> Any:
        handler = self._handlers.get(request.method)
        if handler is None:
            raise MethodNotFound(request.method)
        return await handler(request)

    @staticmethod
    def _parse_params(model: Type[ParamsModel], request: JsonRpcRequest) -> ParamsModel:
        if request.params is not None and not isinstance(request.params, dict):
            raise InvalidParams("Invalid params: 'params' must be an object")
        try:
            return model.model_validate(request.params_dict)
        except ValidationError as exc:
            raise InvalidParams(
                f"Invalid params for {request.method}",
                data=_validation_summary(exc),
            ) from exc

    # --- обработчики методов ---

    async def _handle_initialize(self, request: JsonRpcRequest) -> Dict[str, Any]:
        params = self._parse_params(InitializeParams, request)
        logger.info(
            "initialize from client=%s protocol=%s",
            params.clientInfo.get("name", "<unknown>"),
            params.protocolVersion,
        )
        return {
            "protocolVersion": self._config.protocol_version,
            "capabilities": SERVER_CAPABILITIES,
            "serverInfo": self._config.server_info,
        }

    async def _handle_initialized(self, request: JsonRpcRequest) -> None:
        logger.info("Client reported initialization complete (%s)", request.method)

    async def _handle_ping(self, request: JsonRpcRequest) -> Dict[str, Any]:
        return {}

    async def _handle_tools_list(self, request: JsonRpcRequest) -> Dict[str, Any]:
        return {"tools": [spec.as_mcp_dict() for spec in self._catalog.list()]}

    async def _handle_tools_call(self, request: JsonRpcRequest) -> Dict[str, Any]:
        if not isinstance(request.params_dict.get("name"), str):
            raise InvalidParams("Invalid params: 'name' is required", data={"method": request.method})
        params = self._parse_params(ToolCallParams, request)
        return await self.run_tool(params.name, params.arguments or {}, params.meta)

    async def _handle_legacy_list_tools(self, request: JsonRpcRequest) -> Dict[str, Any]:
        return {"tools": [spec.as_legacy_dict() for spec in self._catalog.list()]}

    async def _handle_legacy_execute(self, request: JsonRpcRequest) -> Dict[str, Any]:
        params = self._parse_params(LegacyExecuteParams, request)
        result = await self.run_tool(params.tool, params.parameters or {}, None, raw=True)
        return {"result": result, "status": "success"}

    async def run_tool(
        self,
        name: str,
        arguments: Dict[str, Any],
        meta: Optional[Dict[str, Any]],
        *,
        raw: bool = False,
    ) -> Any:
        tracer = self._tracing.tracer(meta, tool_name=name)
        tracer.start({"tool": name, "arguments": arguments})
        try:
            if raw:
                result = await self._executor.execute_raw(name, arguments)
            else:
                result = await self._executor.execute(name, arguments)
        except ToolExecutionError as exc:
            if isinstance(exc.cause, BackendError):
                error = describe_backend_failure(name, exc.cause, self._config.notes_api_url)
            else:
                error = ExecutionError(f"Tool execution failed: {exc}", data={"tool": name})
            tracer.finalize_error(error.message)
            raise error from exc
        except BridgeError as exc:
            tracer.finalize_error(exc.message)
            raise
        except Exception as exc:
            logger.exception("Unhandled error in tool %s", name)
            tracer.finalize_error(str(exc))
            raise ExecutionError(f"Internal error: {exc}", data={"tool": name}) from exc

        if raw:
            tracer.finalize_success({"result": result})
            return result
        return tracer.finalize_success(result)


def create_engine(
    config: BridgeConfig,
    *,
    transport: Any = None,
    tracing: Optional[LangSmithTracing] = None,
) -> ProtocolEngine:
    """Собрать движок со всеми зависимостями из одной конфигурации."""
    backend = BackendProxy(config, transport=transport)
    catalog = build_default_catalog()
    executor = ToolExecutor(catalog, backend)
    return ProtocolEngine(config, catalog, executor, tracing=tracing, backend=backend)


__all__ = [
    "NOTIFICATION_METHODS",
    "ProtocolEngine",
    "create_engine",
    "describe_backend_failure",
    "error_response",
    "recover_request_id",
]
