"""Асинхронный HTTP-клиент к API видеозаметок.

Каждый вызов инструмента превращается ровно в один HTTP-запрос. Ошибки
транспорта и статусы не-2xx нормализуются в закрытый набор видов
(:class:`BackendFailureKind`), который движок обрабатывает единообразно.
Повторов нет: первый же сбой возвращается вызывающему.
"""

from __future__ import annotations

import json
import logging
import time
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from notes_bridge.core.config import BridgeConfig

logger = logging.getLogger("notes_bridge.services.backend")


class BackendFailureKind(str, Enum):
    REFUSED = "refused"
    NOT_FOUND = "not-found"
    HTTP_STATUS = "http-status"
    OTHER = "other"


class BackendError(Exception):
    """Базовая ошибка обращения к API заметок."""

    def __init__(self, message: str, *, kind: BackendFailureKind, url: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.url = url

    @property
    def message(self) -> str:
        return str(self)


class BackendConnectionError(BackendError):
    """API недоступен (отказ в соединении, DNS) или иной сбой транспорта."""


class BackendHttpError(BackendError):
    """API ответил статусом вне диапазона 2xx."""

    def __init__(self, status_code: int, message: str, *, url: str) -> None:
        kind = BackendFailureKind.NOT_FOUND if status_code == 404 else BackendFailureKind.HTTP_STATUS
        super().__init__(message, kind=kind, url=url)
        self.status_code = status_code


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message:
            return message
    return response.reason_phrase or f"HTTP {response.status_code}"


class BackendProxy:
    """Клиент API заметок поверх ``httpx.AsyncClient``."""

    def __init__(
        self,
        config: BridgeConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = config.notes_api_url
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=config.request_timeout,
            transport=transport,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def call(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        *,
        query: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Выполнить один запрос и вернуть разобранный JSON-ответ."""
        url = f"{self.base_url}{path}"
        t0 = time.monotonic()
        try:
            response = await self._client.request(method, path, json=body, params=query)
        except httpx.ConnectError as exc:
            logger.warning("Notes API unreachable at %s: %s", url, exc)
            raise BackendConnectionError(
                f"Cannot connect to notes API at {self.base_url} ({method} {url})",
                kind=BackendFailureKind.REFUSED,
                url=url,
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Notes API transport error for %s %s: %s", method, url, exc)
            raise BackendConnectionError(
                str(exc) or type(exc).__name__,
                kind=BackendFailureKind.OTHER,
                url=url,
            ) from exc

        dt = (time.monotonic() - t0) * 1000.0
        logger.debug("%s %s -> %s in %.1f ms", method, url, response.status_code, dt)

        if not response.is_success:
            raise BackendHttpError(response.status_code, _error_message(response), url=url)

        if not response.content:
            return None
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return response.text


__all__ = [
    "BackendConnectionError",
    "BackendError",
    "BackendFailureKind",
    "BackendHttpError",
    "BackendProxy",
]
