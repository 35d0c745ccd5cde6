"""Tests for MCP sync tool definitions and handlers.

Covers:
- Tool definitions have valid schemas and capability requirements
- schema_sync applies editor-shaped (camelCase, nested) payloads
- schema_sync_revert, schema_sync_history, schema_sync_clear_history
- Validation errors for missing arguments
"""

from __future__ import annotations

from pathlib import Path

import mcp.types as types
import pytest

from codoc_sync.mcp.tools.registry import ToolRegistry
from codoc_sync.mcp.tools.sync import SYNC_SPECS, SYNC_TOOLS
from codoc_sync.sync.engine import ReconciliationEngine

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


def _function() -> dict:
    return {
        "id": "fn",
        "type": "function",
        "name": "calc",
        "parentId": "f",
        "functionSignature": "calc(a: number): number",
    }


def _schema_payload() -> list[dict]:
    """Editor-shaped schema: nested children, camelCase attributes."""
    return [
        {
            "id": "d",
            "type": "directory",
            "name": "src",
            "path": "src",
            "children": [
                {
                    "id": "f",
                    "type": "file",
                    "name": "math.ts",
                    "path": "src/math.ts",
                    "children": [_function()],
                }
            ],
        }
    ]


def _added_payload() -> dict:
    return {
        "added": [
            {"id": "d", "type": "directory", "name": "src", "path": "src"},
            {
                "id": "f",
                "type": "file",
                "name": "math.ts",
                "path": "src/math.ts",
                "parentId": "d",
            },
            _function(),
        ]
    }


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry(SYNC_SPECS)


async def _sync(registry, engine, diff=None, schema=None):
    return await registry.call_tool(
        "schema_sync",
        {
            "diff": diff if diff is not None else _added_payload(),
            "schema": schema if schema is not None else _schema_payload(),
        },
        engine,
    )


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


class TestSyncToolDefinitions:
    """Tests for SYNC_TOOLS and SYNC_SPECS."""

    def test_tool_names(self):
        assert [t.name for t in SYNC_TOOLS] == [
            "schema_sync",
            "schema_sync_revert",
            "schema_sync_history",
            "schema_sync_clear_history",
        ]

    def test_schemas_are_objects(self):
        for tool in SYNC_TOOLS:
            assert tool.inputSchema["type"] == "object"

    def test_required_arguments(self):
        by_name = {t.name: t for t in SYNC_TOOLS}
        assert by_name["schema_sync"].inputSchema["required"] == [
            "diff",
            "schema",
        ]
        assert by_name["schema_sync_revert"].inputSchema["required"] == [
            "token"
        ]

    def test_history_is_read_only(self):
        by_name = {t.name: t for t in SYNC_TOOLS}
        assert by_name["schema_sync_history"].annotations.readOnlyHint is True
        assert by_name["schema_sync"].annotations.destructiveHint is True

    def test_permissions(self):
        perms = {s.tool.name: s.permissions for s in SYNC_SPECS}
        assert perms["schema_sync"] == frozenset({"SCHEMA_SYNC"})
        assert perms["schema_sync_history"] == frozenset({"SNAPSHOT_VIEW"})
        assert perms["schema_sync_revert"] == frozenset({"SNAPSHOT_REVERT"})
        assert perms["schema_sync_clear_history"] == frozenset(
            {"SNAPSHOT_REVERT"}
        )


# ---------------------------------------------------------------------------
# schema_sync
# ---------------------------------------------------------------------------


class TestSchemaSync:
    """schema_sync against a real engine and workspace."""

    async def test_creates_folder_file_and_placeholder(
        self, registry, engine: ReconciliationEngine, workspace: Path
    ):
        result = await _sync(registry, engine)

        assert result.isError is False
        content = (workspace / "src" / "math.ts").read_text()
        assert "export function calc(a: number): number {" in content

        data = result.structuredContent
        assert data["success"] is True
        assert data["counts"]["created"] == 3
        assert [op["type"] for op in data["operations"]] == [
            "create-folder",
            "create-file",
            "create-placeholder",
        ]
        assert data["revert_token"]

    async def test_text_report(self, registry, engine):
        result = await _sync(registry, engine)
        text = _text(result)
        assert text.startswith("Schema sync succeeded")
        assert "Placeholders:" in text

    async def test_schema_wrapped_in_roots(self, registry, engine, workspace):
        result = await _sync(
            registry, engine, schema={"roots": _schema_payload()}
        )
        assert result.isError is False
        assert (workspace / "src" / "math.ts").exists()

    async def test_freeform_nodes_are_reported(self, registry, engine):
        note = {"id": "n", "type": "note", "name": "Idea", "isFreeform": True}
        result = await _sync(
            registry, engine, diff={"added": [note]}, schema=[note]
        )
        data = result.structuredContent
        assert data["skipped_nodes"] == ["n"]
        assert data["operations"][0]["type"] == "skip"

    async def test_missing_schema(self, registry, engine):
        result = await registry.call_tool("schema_sync", {"diff": {}}, engine)
        assert result.isError is True
        assert "diff and schema are required" in _text(result)

    async def test_schema_of_wrong_shape(self, registry, engine):
        result = await _sync(registry, engine, schema="src")
        assert result.isError is True
        assert _text(result).startswith("Error (validation_error)")

    async def test_duplicate_ids_rejected(self, registry, engine):
        node = {"id": "x", "type": "file", "name": "a.ts", "path": "a.ts"}
        result = await _sync(registry, engine, diff={}, schema=[node, node])
        assert result.isError is True
        assert "Duplicate schema node id: x" in _text(result)


# ---------------------------------------------------------------------------
# Snapshot tools
# ---------------------------------------------------------------------------


class TestSnapshotTools:
    """Revert, history and clear-history handlers."""

    async def test_revert_restores_edited_file(
        self, registry, engine, workspace: Path
    ):
        target = workspace / "src" / "math.ts"
        target.parent.mkdir()
        target.write_text("export const pi = 3;\n")
        result = await _sync(registry, engine)
        token = result.structuredContent["revert_token"]
        assert "calc" in target.read_text()

        reverted = await registry.call_tool(
            "schema_sync_revert", {"token": token}, engine
        )

        assert reverted.isError is not True
        assert reverted.structuredContent == {"token": token, "reverted": True}
        assert _text(reverted) == f"Reverted workspace to snapshot {token}."
        assert target.read_text() == "export const pi = 3;\n"

    async def test_revert_unknown_token(self, registry, engine):
        result = await registry.call_tool(
            "schema_sync_revert", {"token": "12345"}, engine
        )
        assert result.isError is True
        assert "Snapshot 12345 could not be restored" in _text(result)
        assert "schema_sync_history" in _text(result)

    @pytest.mark.parametrize("args", [{}, {"token": "  "}])
    async def test_revert_requires_token(self, registry, engine, args):
        result = await registry.call_tool("schema_sync_revert", args, engine)
        assert result.isError is True
        assert "token is required" in _text(result)

    async def test_history_empty(self, registry, engine):
        result = await registry.call_tool("schema_sync_history", {}, engine)
        assert _text(result) == "No snapshots captured."
        assert result.structuredContent == {"snapshots": []}

    async def test_history_lists_tokens(self, registry, engine):
        first = (await _sync(registry, engine)).structuredContent
        second = (await _sync(registry, engine)).structuredContent

        result = await registry.call_tool("schema_sync_history", {}, engine)

        tokens = [s["token"] for s in result.structuredContent["snapshots"]]
        assert tokens == [first["revert_token"], second["revert_token"]]
        assert _text(result).startswith("2 snapshot(s):")

    async def test_clear_history(self, registry, engine):
        await _sync(registry, engine)

        result = await registry.call_tool(
            "schema_sync_clear_history", {}, engine
        )

        assert result.structuredContent == {"cleared": 1}
        assert _text(result) == "Cleared 1 snapshot(s)."
        assert engine.get_snapshot_history() == []
