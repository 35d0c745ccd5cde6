"""MCP tool handlers for schema reconciliation.

Defines four tools:

- ``schema_sync`` -- apply a structural diff to the workspace.
- ``schema_sync_revert`` -- restore the files captured by a snapshot.
- ``schema_sync_history`` -- list snapshots and their revert tokens.
- ``schema_sync_clear_history`` -- drop every snapshot.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...schema.models import DependencyGraph, SchemaTree, StructuralDiff
from ...sync.engine import ReconciliationEngine
from ...sync.reporter import (
    format_snapshot_history,
    format_sync_result,
    history_to_json,
    result_to_json,
)
from .errors import build_error_response
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------

_NODE_LIST = {
    "type": "array",
    "items": {"type": "object"},
}

SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="schema_sync",
        description=(
            "Apply a structural schema diff to the workspace: renames, "
            "removals, folder/file/placeholder creation and placeholder "
            "refresh. Returns per-node operations and a revert token."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=False,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "diff": {
                    "type": "object",
                    "description": "Structural diff with added, removed, renamed ({from, to}) and modified node lists",
                    "properties": {
                        "added": _NODE_LIST,
                        "removed": _NODE_LIST,
                        "renamed": _NODE_LIST,
                        "modified": _NODE_LIST,
                    },
                },
                "schema": {
                    "type": "array",
                    "items": {"type": "object"},
                    "description": "Current schema tree as a list of root nodes with nested children",
                },
                "dependency_graph": {
                    "type": "object",
                    "description": "Optional {nodes: {id: {downstream: [...]}}, edges: [...]} graph",
                },
            },
            "required": ["diff", "schema"],
        },
    ),
    types.Tool(
        name="schema_sync_revert",
        description=(
            "Restore every file captured by a snapshot to its captured "
            "content. Files created after the snapshot are not deleted."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "token": {
                    "type": "string",
                    "description": "Revert token returned by schema_sync",
                },
            },
            "required": ["token"],
        },
    ),
    types.Tool(
        name="schema_sync_history",
        description="List captured snapshots with revert token, capture time and file count.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="schema_sync_clear_history",
        description="Drop every captured snapshot. Revert tokens become invalid.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


def _schema_roots(raw: Any) -> list[dict[str, Any]]:
    """Accept either a list of roots or ``{"roots": [...]}``."""
    if isinstance(raw, dict):
        raw = raw.get("roots") or raw.get("nodes") or []
    if not isinstance(raw, list):
        raise ValueError("schema must be a list of root nodes")
    return raw


async def _handle_schema_sync(
    engine: ReconciliationEngine, args: dict[str, Any]
) -> types.CallToolResult:
    if "diff" not in args or "schema" not in args:
        return build_error_response(
            "validation_error",
            "diff and schema are required",
            "Provide the 'diff' object and the full current 'schema' tree.",
        )

    diff = StructuralDiff.from_payload(args["diff"])
    schema = SchemaTree.from_payload(_schema_roots(args["schema"]))
    graph = DependencyGraph.from_payload(args.get("dependency_graph"))

    result = await engine.reconcile(diff, schema, graph)

    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_sync_result(result))
        ],
        structuredContent=result_to_json(result),
        isError=not result.success,
    )


async def _handle_revert(
    engine: ReconciliationEngine, args: dict[str, Any]
) -> types.CallToolResult:
    token = args.get("token")
    if token is None or str(token).strip() == "":
        return build_error_response(
            "validation_error",
            "token is required",
            "Provide the 'token' returned by schema_sync.",
        )

    token = str(token).strip()
    restored = await engine.revert_to_snapshot(token)
    if not restored:
        return build_error_response(
            "not_found",
            f"Snapshot {token} could not be restored",
            "Use schema_sync_history to list available revert tokens.",
        )

    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text", text=f"Reverted workspace to snapshot {token}."
            )
        ],
        structuredContent={"token": token, "reverted": True},
    )


async def _handle_history(
    engine: ReconciliationEngine, args: dict[str, Any]
) -> types.CallToolResult:
    history = engine.get_snapshot_history()
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text", text=format_snapshot_history(history)
            )
        ],
        structuredContent=history_to_json(history),
    )


async def _handle_clear_history(
    engine: ReconciliationEngine, args: dict[str, Any]
) -> types.CallToolResult:
    count = len(engine.get_snapshot_history())
    engine.clear_history()
    logger.info("Cleared %d snapshots", count)
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=f"Cleared {count} snapshot(s).")
        ],
        structuredContent={"cleared": count},
    )


# ToolSpec list for registry-based dispatch
SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=SYNC_TOOLS[0],
        permissions=frozenset({"SCHEMA_SYNC"}),
        handler=_handle_schema_sync,
    ),
    ToolSpec(
        tool=SYNC_TOOLS[1],
        permissions=frozenset({"SNAPSHOT_REVERT"}),
        handler=_handle_revert,
    ),
    ToolSpec(
        tool=SYNC_TOOLS[2],
        permissions=frozenset({"SNAPSHOT_VIEW"}),
        handler=_handle_history,
    ),
    ToolSpec(
        tool=SYNC_TOOLS[3],
        permissions=frozenset({"SNAPSHOT_REVERT"}),
        handler=_handle_clear_history,
    ),
]
