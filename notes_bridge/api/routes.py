"""FastAPI-маршруты HTTP-транспорта MCP-моста."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from notes_bridge.core.engine import ProtocolEngine, error_response
from notes_bridge.core.errors import DispatchError, ExecutionError, InvalidRequest, ParseError
from notes_bridge.models.json_rpc import LegacyExecuteParams

logger = logging.getLogger("notes_bridge.api.routes")

router = APIRouter()


def _engine(request: Request) -> ProtocolEngine:
    return request.app.state.engine


@router.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@router.get("/mcp")
def mcp_info(request: Request) -> Dict[str, Any]:
    config = _engine(request).config
    return {
        "protocolVersion": config.protocol_version,
        "serverInfo": config.server_info,
        "transport": {"type": "http", "endpoint": "/mcp"},
    }


@router.post("/mcp")
async def mcp_rpc(request: Request) -> Response:
    body = await request.body()
    try:
        message = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        # В HTTP ответ привязан к соединению, поэтому отвечаем и без id.
        logger.warning("Unparsable JSON-RPC body: %s", exc)
        return JSONResponse(error_response(ParseError(data={"detail": str(exc)}), None), status_code=400)

    if not isinstance(message, dict):
        logger.warning("Rejecting JSON-RPC body that is not an object (%s)", type(message).__name__)
        return JSONResponse(
            error_response(InvalidRequest(data={"detail": "request must be a JSON object"}), None),
            status_code=400,
        )

    response = await _engine(request).handle_message(message)
    if response is None:
        return Response(status_code=202)
    return JSONResponse(response)


# Маршруты исходного (не-MCP) HTTP API: список инструментов и прямой вызов.


@router.get("/mcp/tools")
def legacy_tools(request: Request) -> Dict[str, Any]:
    return {"tools": [spec.as_legacy_dict() for spec in _engine(request).catalog.list()]}


@router.post("/mcp/execute")
async def legacy_execute(payload: LegacyExecuteParams, request: Request) -> JSONResponse:
    engine = _engine(request)
    try:
        result = await engine.run_tool(payload.tool, payload.parameters or {}, None, raw=True)
    except DispatchError as exc:
        return JSONResponse({"error": "Invalid parameters", "message": exc.message}, status_code=400)
    except ExecutionError as exc:
        logger.error("MCP tool execution error: %s", exc)
        return JSONResponse({"error": "Tool execution failed", "message": exc.message}, status_code=500)
    return JSONResponse({"result": result, "status": "success"})


__all__ = ["router"]
