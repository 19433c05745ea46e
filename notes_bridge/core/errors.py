"""Таксономия ошибок моста и коды JSON-RPC 2.0."""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class BridgeError(Exception):
    """Базовая ошибка, которую движок превращает в объект error JSON-RPC."""

    code = INTERNAL_ERROR

    def __init__(self, message: str, *, code: Optional[int] = None, data: Any = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.data = data

    @property
    def message(self) -> str:
        return str(self)


# --- ProtocolError: конверт не разобран или имеет неверную форму ---


class ProtocolError(BridgeError):
    pass


class ParseError(ProtocolError):
    code = PARSE_ERROR

    def __init__(self, message: str = "Parse error", *, data: Any = None) -> None:
        super().__init__(message, data=data)


class InvalidRequest(ProtocolError):
    code = INVALID_REQUEST

    def __init__(self, message: str = "Invalid Request", *, data: Any = None) -> None:
        super().__init__(message, data=data)


# --- DispatchError: ошибки входных данных клиента ---


class DispatchError(BridgeError):
    pass


class MethodNotFound(DispatchError):
    code = METHOD_NOT_FOUND

    def __init__(self, method: str) -> None:
        super().__init__(f"Method not found: {method}", data={"method": method})
        self.method = method


class InvalidParams(DispatchError):
    code = INVALID_PARAMS


class MissingParameter(InvalidParams):
    """Не переданы обязательные параметры инструмента.

    Собираются все отсутствующие параметры сразу, ``name`` хранит первый из них
    в порядке объявления схемы.
    """

    def __init__(self, tool: str, names: Sequence[str]) -> None:
        self.tool = tool
        self.names: List[str] = list(names)
        self.name = self.names[0]
        label = "parameter" if len(self.names) == 1 else "parameters"
        super().__init__(
            f"Missing required {label}: {', '.join(self.names)}",
            data={"tool": tool, "missing": self.names},
        )


class InvalidParameter(InvalidParams):
    def __init__(self, tool: str, name: str, expected: str) -> None:
        self.tool = tool
        self.name = name
        super().__init__(
            f"Invalid params: '{name}' must be a {expected}",
            data={"tool": tool, "parameter": name, "expected": expected},
        )


# --- ExecutionError: сбои во время выполнения инструмента ---


class ExecutionError(BridgeError):
    code = INTERNAL_ERROR


class UnknownTool(ExecutionError):
    def __init__(self, tool: str, available: Sequence[str] = ()) -> None:
        super().__init__(
            f"Unknown tool: {tool}",
            data={"tool": tool, "available": list(available)},
        )
        self.tool = tool


class ToolExecutionError(ExecutionError):
    """Сбой вызова бэкенда; исходная ошибка доступна через ``cause``."""

    def __init__(self, tool: str, cause: Exception) -> None:
        super().__init__(str(cause), data={"tool": tool})
        self.tool = tool
        self.cause = cause


__all__ = [
    "BridgeError",
    "DispatchError",
    "ExecutionError",
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "InvalidParameter",
    "InvalidParams",
    "InvalidRequest",
    "METHOD_NOT_FOUND",
    "MethodNotFound",
    "MissingParameter",
    "PARSE_ERROR",
    "ParseError",
    "ProtocolError",
    "ToolExecutionError",
    "UnknownTool",
]
