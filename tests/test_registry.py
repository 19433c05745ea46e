from __future__ import annotations

import pytest

from notes_bridge.tools.registry import NOTES_TOOLS, ToolCatalog, ToolSchema, ToolSpec, build_default_catalog


def test_catalog_order_and_lookup() -> None:
    catalog = build_default_catalog()

    assert catalog.names() == ["search_notes", "get_note", "create_note"]
    assert len(catalog) == 3
    assert catalog.find("get_note") is NOTES_TOOLS[1]
    assert catalog.find("delete_note") is None
    assert "create_note" in catalog


def test_required_parameters() -> None:
    catalog = build_default_catalog()

    assert catalog.find("search_notes").input_schema.required == ["query"]
    assert catalog.find("get_note").input_schema.required == ["id"]
    assert catalog.find("create_note").input_schema.required == ["title", "content"]


def test_mcp_and_legacy_shapes() -> None:
    spec = build_default_catalog().find("create_note")

    mcp = spec.as_mcp_dict()
    legacy = spec.as_legacy_dict()

    assert mcp["inputSchema"] == legacy["parameters"]
    assert mcp["inputSchema"]["properties"]["title"] == {"type": "string", "description": "Note title"}


def test_duplicate_names_are_rejected() -> None:
    spec = ToolSpec(name="dup", description="d", input_schema=ToolSchema())

    with pytest.raises(ValueError):
        ToolCatalog([spec, spec])
