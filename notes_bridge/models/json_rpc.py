"""Pydantic-модели для JSON-RPC конвертов MCP-моста."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr

# bool намеренно не входит: True/False не являются допустимым id в JSON-RPC.
RequestId = Union[StrictStr, StrictInt, StrictFloat, None]


class JsonRpcRequest(BaseModel):
    """Стандартный JSON-RPC 2.0 запрос или уведомление.

    Наличие ``id`` определяется по ``model_fields_set``: ``"id": null`` означает
    запрос, а отсутствие ключа означает уведомление.
    """

    model_config = ConfigDict(extra="ignore")

    jsonrpc: Literal["2.0"] = "2.0"
    method: StrictStr
    params: Optional[Union[Dict[str, Any], List[Any]]] = None
    id: RequestId = None

    @property
    def has_id(self) -> bool:
        return "id" in self.model_fields_set

    @property
    def params_dict(self) -> Dict[str, Any]:
        return self.params if isinstance(self.params, dict) else {}


class JsonRpcResponse(BaseModel):
    """Успешный JSON-RPC 2.0 ответ."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Any = None
    result: Any = None


class JsonRpcErrorObj(BaseModel):
    """Структура ошибки JSON-RPC 2.0."""

    code: int
    message: str
    data: Optional[Any] = None


class JsonRpcError(BaseModel):
    """JSON-RPC 2.0 ответ с ошибкой."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Any = None
    error: JsonRpcErrorObj

    def as_dict(self) -> Dict[str, Any]:
        # data отсутствует в ответе, если не задано.
        payload = self.model_dump()
        if payload["error"].get("data") is None:
            payload["error"].pop("data", None)
        return payload


class InitializeParams(BaseModel):
    """Параметры метода `initialize` MCP."""

    protocolVersion: Optional[str] = None
    clientInfo: Dict[str, Any] = Field(default_factory=dict)
    capabilities: Dict[str, Any] = Field(default_factory=dict)


class ToolCallParams(BaseModel):
    """Параметры `tools/call`: имя инструмента и словарь аргументов."""

    name: StrictStr
    arguments: Optional[Dict[str, Any]] = None
    meta: Optional[Dict[str, Any]] = Field(default=None, alias="_meta")


class LegacyExecuteParams(BaseModel):
    """Параметры устаревшего метода `mcp/execute`."""

    tool: StrictStr
    parameters: Optional[Dict[str, Any]] = None


__all__ = [
    "InitializeParams",
    "JsonRpcError",
    "JsonRpcErrorObj",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "LegacyExecuteParams",
    "RequestId",
    "ToolCallParams",
]
