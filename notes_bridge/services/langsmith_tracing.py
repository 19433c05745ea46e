"""Опциональная интеграция с LangSmith для трассировки вызовов инструментов.

Клиент передаёт родительский контекст в ``params._meta.langsmith``::

    {"parent_run_id": "...", "trace_id": "...", "project": "...",
     "name": "...", "tags": [...], "metadata": {...}, "enabled": true}

Run создаётся, если трассировка включена через ``LANGSMITH_TRACING`` или
клиент прислал идентификаторы родителя. Сбои LangSmith только логируются:
вызов инструмента от них не зависит.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from langsmith import Client

from notes_bridge.core.config import BridgeConfig

logger = logging.getLogger("notes_bridge.services.langsmith_tracing")

DEFAULT_PROJECT = "notes_bridge"


def _text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _tags(raw: Any) -> List[str]:
    if not isinstance(raw, (list, tuple)):
        return []
    tags = [str(item).strip() for item in raw if isinstance(item, (str, int, float))]
    return [tag for tag in tags if tag]


@dataclass(slots=True)
class LangSmithContext:
    """Родительский контекст трассировки одного вызова."""

    run_name: str
    parent_run_id: Optional[str] = None
    trace_id: Optional[str] = None
    run_id: Optional[str] = None
    project: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    force_enable: bool = False

    def requested(self) -> bool:
        return self.force_enable or bool(self.parent_run_id or self.trace_id or self.run_id)


def extract_context(raw_meta: Optional[Dict[str, Any]], *, tool_name: str) -> LangSmithContext:
    run_name = f"notes_bridge.{tool_name}"
    nested = raw_meta.get("langsmith") if isinstance(raw_meta, dict) else None
    if not isinstance(nested, dict):
        return LangSmithContext(run_name=run_name)

    metadata = nested.get("metadata")
    return LangSmithContext(
        run_name=_text(nested.get("name")) or run_name,
        parent_run_id=_text(nested.get("parent_run_id")),
        trace_id=_text(nested.get("trace_id")),
        run_id=_text(nested.get("run_id")),
        project=_text(nested.get("project")),
        tags=_tags(nested.get("tags")),
        metadata=copy.deepcopy(metadata) if isinstance(metadata, dict) else {},
        force_enable=nested.get("enabled") is True,
    )


class LangSmithTracer:
    """Один run вокруг одного вызова инструмента (тип run'а: ``tool``)."""

    def __init__(
        self,
        context: LangSmithContext,
        client: Optional[Any],
        *,
        enabled: bool,
        project: Optional[str],
    ) -> None:
        self.context = context
        self.project_name = context.project or project or DEFAULT_PROJECT
        self.run_id: Optional[str] = None
        self.trace_id: Optional[str] = None
        self._client = client
        self._wanted = client is not None and (enabled or context.requested())
        self._open = False

    @property
    def active(self) -> bool:
        return self._open

    def start(self, inputs: Dict[str, Any]) -> None:
        if not self._wanted or self._open or self.run_id is not None:
            return

        run_id = self.context.run_id or str(uuid.uuid4())
        trace_id = self.context.trace_id
        if trace_id is None and self.context.parent_run_id is None:
            trace_id = str(uuid.uuid4())

        run: Dict[str, Any] = {
            "id": run_id,
            "name": self.context.run_name,
            "run_type": "tool",
            "inputs": inputs,
            "project_name": self.project_name,
        }
        # LangSmith выводит trace_id из родителя, если тот указан.
        if self.context.parent_run_id:
            run["parent_run_id"] = self.context.parent_run_id
        else:
            run["trace_id"] = trace_id
        if self.context.tags:
            run["tags"] = self.context.tags
        if self.context.metadata:
            run["metadata"] = self.context.metadata

        try:
            self._client.create_run(**run)
        except Exception as exc:  # pragma: no cover - внешняя зависимость
            logger.warning("LangSmith create_run failed: %s", exc)
            self._wanted = False
            return
        self.run_id = run_id
        self.trace_id = trace_id
        self._open = True
        logger.debug("LangSmith run %s started for %s", run_id, self.context.run_name)

    def _close(self, **payload: Any) -> None:
        if not self._open:
            return
        self._open = False
        try:
            self._client.update_run(self.run_id, end_time=datetime.now(timezone.utc), **payload)
        except Exception as exc:  # pragma: no cover - внешняя зависимость
            logger.warning("LangSmith update_run failed: %s", exc)

    def attach_to_response(self, response: Dict[str, Any]) -> Dict[str, Any]:
        if self.run_id is None:
            return response
        info: Dict[str, Any] = {
            "runId": self.run_id,
            "project": self.project_name,
            "runName": self.context.run_name,
        }
        if self.trace_id:
            info["traceId"] = self.trace_id
        if self.context.parent_run_id:
            info["parentRunId"] = self.context.parent_run_id
        response.setdefault("metadata", {})["langsmith"] = info
        return response

    def finalize_success(self, response: Dict[str, Any]) -> Dict[str, Any]:
        response = self.attach_to_response(response)
        self._close(outputs={"response": response})
        return response

    def finalize_error(self, message: str) -> None:
        self._close(error=message)


class LangSmithTracing:
    """Выдаёт трассировщики; клиент LangSmith создаётся при первой надобности."""

    def __init__(self, config: BridgeConfig, client_factory: Callable[[], Any] = Client) -> None:
        self._enabled = config.langsmith_enabled
        self._project = config.langsmith_project
        self._client_factory = client_factory
        self._client: Optional[Any] = None
        self._unavailable = False

    def _client_or_none(self) -> Optional[Any]:
        if self._client is None and not self._unavailable:
            try:
                self._client = self._client_factory()
            except Exception as exc:  # pragma: no cover - сеть/конфигурация
                logger.warning("LangSmith client init failed: %s", exc)
                self._unavailable = True
        return self._client

    def tracer(self, raw_meta: Optional[Dict[str, Any]], *, tool_name: str) -> LangSmithTracer:
        context = extract_context(raw_meta, tool_name=tool_name)
        client = self._client_or_none() if self._enabled or context.requested() else None
        return LangSmithTracer(context, client, enabled=self._enabled, project=self._project)


__all__ = [
    "DEFAULT_PROJECT",
    "LangSmithContext",
    "LangSmithTracer",
    "LangSmithTracing",
    "extract_context",
]
