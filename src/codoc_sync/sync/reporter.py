"""Sync result formatting functions.

Provides human-readable and machine-readable output for reconciliation:

- ``format_sync_result`` -- full post-reconcile summary.
- ``format_snapshot_history`` -- snapshot history listing.
- ``result_to_json`` -- structured dict for MCP tool output.
- ``history_to_json`` -- structured snapshot history.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import CodebaseSnapshot, SyncOperation, SyncResult

from .models import SyncOperationType

# Display order for the per-type sections
_SECTIONS: list[tuple[SyncOperationType, str]] = [
    (SyncOperationType.RENAME, "Renamed"),
    (SyncOperationType.MOVE, "Moved"),
    (SyncOperationType.DELETE, "Deleted"),
    (SyncOperationType.CREATE_FOLDER, "Created folders"),
    (SyncOperationType.CREATE_FILE, "Created files"),
    (SyncOperationType.CREATE_PLACEHOLDER, "Placeholders"),
]


def _describe(op: SyncOperation) -> str:
    label = op.node.path or op.node.name
    if op.old_path and op.new_path and op.old_path != op.new_path:
        return f"{op.old_path} -> {op.new_path}"
    return label


def format_timestamp(timestamp_ms: int) -> str:
    """Render an epoch-millisecond timestamp as UTC ISO 8601."""
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds")


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_result(result: SyncResult) -> str:
    """Format a complete sync result as human-readable text.

    Sections are only included when they contain at least one operation.

    Args:
        result: The completed sync result.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    status = "succeeded" if result.success else "FAILED"
    lines.append(f"Schema sync {status}")
    lines.append(f"Started: {result.started_at}")
    if result.completed_at:
        lines.append(f"Completed: {result.completed_at}")
    if result.revert_token:
        lines.append(f"Revert token: {result.revert_token}")
    lines.append("")

    lines.append(
        f"Applied {len(result.operations)} operations: "
        f"{len(result.created)} created, "
        f"{len(result.deleted)} deleted, "
        f"{len(result.renamed)} renamed/moved, "
        f"{len(result.skipped)} skipped"
    )
    lines.append("")

    for op_type, title in _SECTIONS:
        ops = result.of_type(op_type)
        if not ops:
            continue
        lines.append(f"{title}:")
        for op in ops:
            entry = f"  {_describe(op)}"
            if op.affected_nodes:
                entry += f" (affects {len(op.affected_nodes)} nodes)"
            lines.append(entry)
        lines.append("")

    if result.skipped:
        lines.append("Skipped:")
        for op in result.skipped:
            reason = op.error or "no reason given"
            lines.append(f"  {op.node.path or op.node.name}: {reason}")
        lines.append("")

    if result.warnings:
        lines.append("Warnings:")
        for warning in result.warnings:
            lines.append(f"  {warning}")
        lines.append("")

    if result.errors:
        lines.append("Errors:")
        for error in result.errors:
            lines.append(f"  {error}")
        lines.append("")

    return "\n".join(lines).rstrip()


def format_snapshot_history(history: list[CodebaseSnapshot]) -> str:
    """Format the snapshot history, newest first."""
    if not history:
        return "No snapshots captured."
    lines = [f"{len(history)} snapshot(s):"]
    for snapshot in reversed(history):
        lines.append(
            f"  {snapshot.token}  {format_timestamp(snapshot.timestamp)}  "
            f"{len(snapshot.files)} files"
        )
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def result_to_json(result: SyncResult) -> dict:
    """Convert a sync result to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.
    """
    operations = []
    for op in result.operations:
        entry: dict = {
            "type": op.type.value,
            "node_id": op.node.id,
            "name": op.node.name,
            "path": op.node.path,
        }
        if op.old_path:
            entry["old_path"] = op.old_path
        if op.new_path:
            entry["new_path"] = op.new_path
        if op.affected_nodes:
            entry["affected_nodes"] = list(op.affected_nodes)
        if op.error:
            entry["error"] = op.error
        operations.append(entry)

    return {
        "success": result.success,
        "revert_token": result.revert_token,
        "started_at": result.started_at,
        "completed_at": result.completed_at,
        "counts": {
            "total": len(result.operations),
            "created": len(result.created),
            "deleted": len(result.deleted),
            "renamed": len(result.renamed),
            "skipped": len(result.skipped),
            "warnings": len(result.warnings),
            "errors": len(result.errors),
        },
        "operations": operations,
        "warnings": list(result.warnings),
        "errors": list(result.errors),
        "skipped_nodes": [node.id for node in result.skipped_nodes],
    }


def history_to_json(history: list[CodebaseSnapshot]) -> dict:
    """Convert the snapshot history to a structured dict, oldest first."""
    return {
        "snapshots": [
            {
                "token": snapshot.token,
                "captured_at": format_timestamp(snapshot.timestamp),
                "files": sorted(snapshot.files),
            }
            for snapshot in history
        ]
    }
