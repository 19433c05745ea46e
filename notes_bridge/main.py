"""Точка входа FastAPI: тот же MCP-движок, что и в stdio, но поверх HTTP.

Запуск::

    notes-bridge-http --port 3002
    uvicorn notes_bridge.main:create_app --factory --port 3002
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Sequence

import uvicorn
from fastapi import FastAPI

from .api import router as api_router
from .core.config import BridgeConfig
from .core.engine import create_engine

logger = logging.getLogger("notes_bridge")
if not logger.handlers:
    logging.basicConfig(level=logging.INFO)


def create_app(config: Optional[BridgeConfig] = None, *, transport: Any = None) -> FastAPI:
    """Собрать FastAPI-приложение с собственным экземпляром движка."""
    config = config or BridgeConfig.from_env(sys.argv)
    engine = create_engine(config, transport=transport)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info("Proxying to notes API at %s", config.notes_api_url)
        try:
            yield
        finally:
            await engine.aclose()

    application = FastAPI(
        title="Video Notes MCP Bridge",
        version=config.server_version,
        lifespan=lifespan,
    )
    application.state.engine = engine
    application.include_router(api_router)
    return application


def serve_http(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="notes-bridge-http",
        description="HTTP MCP bridge to the video notes API.",
    )
    parser.add_argument("--host", help="Bind address (env MCP_HTTP_HOST).")
    parser.add_argument("--port", type=int, help="Bind port (env MCP_HTTP_PORT).")
    parser.add_argument("--api-url", help="Base URL of the notes API (env NOTES_API_URL).")
    parser.add_argument("--legacy", action="store_true", help="Enable mcp/list_tools and mcp/execute.")
    args = parser.parse_args(argv)

    overrides: Dict[str, Any] = {}
    if args.host:
        overrides["http_host"] = args.host
    if args.port:
        overrides["http_port"] = args.port
    if args.api_url:
        overrides["notes_api_url"] = args.api_url
    if args.legacy:
        overrides["enable_legacy_methods"] = True
    config = dataclasses.replace(BridgeConfig.from_env(), **overrides)

    logger.info("MCP HTTP server listening on http://%s:%s", config.http_host, config.http_port)
    uvicorn.run(
        create_app(config),
        host=config.http_host,
        port=config.http_port,
        log_level=config.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(serve_http())
