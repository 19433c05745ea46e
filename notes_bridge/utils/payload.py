"""Утилиты для упаковки ответов бэкенда в содержимое MCP."""

from __future__ import annotations

import json
from typing import Any, Dict, List


def serialise_tool_result(value: Any) -> str:
    """Строки отдаём как есть, всё остальное сериализуем в JSON с отступом в 2 пробела."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, indent=2, default=str)


def text_content(value: Any) -> Dict[str, List[Dict[str, Any]]]:
    return {"content": [{"type": "text", "text": serialise_tool_result(value)}]}


__all__ = [
    "serialise_tool_result",
    "text_content",
]
