"""Глобальные константы и настройки MCP-моста к API видеозаметок."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

logger = logging.getLogger("notes_bridge.core.config")

PROTOCOL_VERSION = "2024-11-05"
DEFAULT_NOTES_API_URL = "http://localhost:3001"
DEFAULT_HTTP_PORT = 3002

SERVER_CAPABILITIES: Dict[str, Dict[str, object]] = {
    "tools": {
        "listChanged": False,
    },
    "logging": {},
}


def _get_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(0.0, float(raw))
    except ValueError:
        logger.warning("Invalid value %s=%r, falling back to %s", name, raw, default)
        return default


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid value %s=%r, falling back to %s", name, raw, default)
        return default


@dataclass(frozen=True, slots=True)
class BridgeConfig:
    """Неизменяемые настройки процесса; собираются один раз при старте."""

    notes_api_url: str = DEFAULT_NOTES_API_URL
    request_timeout: Optional[float] = None
    server_name: str = "video-notes-mcp"
    server_version: str = "1.0.0"
    protocol_version: str = PROTOCOL_VERSION
    enable_legacy_methods: bool = False
    interactive: bool = False
    recover_parse_error_ids: bool = False
    log_level: str = "INFO"
    http_host: str = "127.0.0.1"
    http_port: int = DEFAULT_HTTP_PORT
    langsmith_enabled: bool = False
    langsmith_project: Optional[str] = None

    def __post_init__(self) -> None:
        # Базовый URL всегда без завершающего слэша: пути API начинаются с "/".
        object.__setattr__(self, "notes_api_url", self.notes_api_url.rstrip("/") or DEFAULT_NOTES_API_URL)

    @property
    def server_info(self) -> Dict[str, str]:
        return {"name": self.server_name, "version": self.server_version}

    @classmethod
    def from_env(cls, argv: Sequence[str] = ()) -> "BridgeConfig":
        """Собрать конфигурацию из окружения и флагов командной строки."""
        argv = list(argv)
        project = (os.getenv("LANGSMITH_PROJECT") or "").strip() or None
        return cls(
            notes_api_url=os.getenv("NOTES_API_URL", DEFAULT_NOTES_API_URL),
            request_timeout=_get_float("NOTES_API_TIMEOUT", None),
            server_version=os.getenv("APP_VERSION", "1.0.0"),
            enable_legacy_methods="--legacy" in argv or _get_bool(os.getenv("MCP_ENABLE_LEGACY")),
            interactive="--interactive" in argv or _get_bool(os.getenv("MCP_INTERACTIVE")),
            recover_parse_error_ids=_get_bool(os.getenv("MCP_RECOVER_PARSE_ERROR_IDS")),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
            http_host=os.getenv("MCP_HTTP_HOST", "127.0.0.1"),
            http_port=_get_int("MCP_HTTP_PORT", DEFAULT_HTTP_PORT),
            langsmith_enabled=_get_bool(os.getenv("LANGSMITH_TRACING")),
            langsmith_project=project,
        )


__all__ = [
    "BridgeConfig",
    "DEFAULT_HTTP_PORT",
    "DEFAULT_NOTES_API_URL",
    "PROTOCOL_VERSION",
    "SERVER_CAPABILITIES",
]
