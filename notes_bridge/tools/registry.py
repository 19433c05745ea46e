"""Описание схем и реестра MCP-инструментов для работы с заметками."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

ToolResponse = Dict[str, Any]


class ToolSchema(BaseModel):
    """JSON-схема аргументов инструмента MCP."""

    model_config = ConfigDict(frozen=True)

    type: str = "object"
    properties: Dict[str, Any] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return self.model_dump()


class ToolSpec(BaseModel):
    """Спецификация инструмента MCP, публикуемая в `tools/list`."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    input_schema: ToolSchema

    def as_mcp_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema.as_dict(),
        }

    def as_legacy_dict(self) -> Dict[str, Any]:
        # Формат исходного HTTP-сервера: схема лежит в поле "parameters".
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.input_schema.as_dict(),
        }


class ToolCatalog:
    """Упорядоченный неизменяемый реестр инструментов."""

    def __init__(self, specs: Iterable[ToolSpec]) -> None:
        ordered: Tuple[ToolSpec, ...] = tuple(specs)
        index: Dict[str, ToolSpec] = {}
        for spec in ordered:
            if spec.name in index:
                raise ValueError(f"Duplicate tool name: {spec.name}")
            index[spec.name] = spec
        self._specs = ordered
        self._index = index

    def list(self) -> Tuple[ToolSpec, ...]:
        return self._specs

    def find(self, name: str) -> Optional[ToolSpec]:
        return self._index.get(name)

    def names(self) -> List[str]:
        return [spec.name for spec in self._specs]

    def __len__(self) -> int:
        return len(self._specs)

    def __contains__(self, name: object) -> bool:
        return name in self._index


NOTES_TOOLS: Tuple[ToolSpec, ...] = (
    ToolSpec(
        name="search_notes",
        description="Search through video notes",
        input_schema=ToolSchema(
            properties={
                "query": {"type": "string", "description": "Search query"},
            },
            required=["query"],
        ),
    ),
    ToolSpec(
        name="get_note",
        description="Get a specific note by ID",
        input_schema=ToolSchema(
            properties={
                "id": {"type": "string", "description": "Note ID"},
            },
            required=["id"],
        ),
    ),
    ToolSpec(
        name="create_note",
        description="Create a new note",
        input_schema=ToolSchema(
            properties={
                "title": {"type": "string", "description": "Note title"},
                "content": {"type": "string", "description": "Note content"},
            },
            required=["title", "content"],
        ),
    ),
)


def build_default_catalog() -> ToolCatalog:
    return ToolCatalog(NOTES_TOOLS)


__all__ = [
    "NOTES_TOOLS",
    "ToolCatalog",
    "ToolResponse",
    "ToolSchema",
    "ToolSpec",
    "build_default_catalog",
]
