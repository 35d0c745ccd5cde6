"""Tests for sync reporter formatting functions.

Covers:
- format_sync_result sections, counts and omission of empty sections
- format_snapshot_history ordering
- result_to_json / history_to_json structure
"""

from __future__ import annotations

from codoc_sync.schema.models import SchemaNode
from codoc_sync.sync.models import (
    CodebaseSnapshot,
    SyncOperation,
    SyncOperationType,
    SyncResult,
)
from codoc_sync.sync.reporter import (
    format_snapshot_history,
    format_sync_result,
    format_timestamp,
    history_to_json,
    result_to_json,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _node(path: str, kind: str = "file", name: str | None = None) -> SchemaNode:
    return SchemaNode(
        id=path, kind=kind, name=name or path.rsplit("/", 1)[-1], path=path
    )


def _op(op_type: SyncOperationType, path: str, **kwargs) -> SyncOperation:
    return SyncOperation(type=op_type, node=_node(path), **kwargs)


def _result(operations=None, **kwargs) -> SyncResult:
    defaults = {
        "success": True,
        "operations": operations or [],
        "revert_token": "1700000000000",
        "started_at": "2026-02-07T10:00:00+00:00",
        "completed_at": "2026-02-07T10:00:01+00:00",
    }
    defaults.update(kwargs)
    return SyncResult(**defaults)


# ---------------------------------------------------------------------------
# format_sync_result
# ---------------------------------------------------------------------------


class TestFormatSyncResult:
    """Tests for format_sync_result()."""

    def test_header(self):
        text = format_sync_result(_result())
        assert text.startswith("Schema sync succeeded")
        assert "Revert token: 1700000000000" in text
        assert "Completed: 2026-02-07T10:00:01+00:00" in text

    def test_failed_header(self):
        text = format_sync_result(
            _result(success=False, errors=["Sync failed: disk gone"])
        )
        assert text.startswith("Schema sync FAILED")
        assert "Errors:\n  Sync failed: disk gone" in text

    def test_summary_counts(self):
        ops = [
            _op(SyncOperationType.CREATE_FOLDER, "src"),
            _op(SyncOperationType.CREATE_FILE, "src/a.ts"),
            _op(SyncOperationType.DELETE, "old.ts"),
            _op(
                SyncOperationType.MOVE,
                "lib/b.ts",
                old_path="src/b.ts",
                new_path="lib/b.ts",
            ),
            SyncOperation.skip(_node("notes"), "Freeform node"),
        ]
        text = format_sync_result(_result(ops))
        assert (
            "Applied 5 operations: 2 created, 1 deleted, "
            "1 renamed/moved, 1 skipped"
        ) in text

    def test_move_shows_both_paths(self):
        ops = [
            _op(
                SyncOperationType.MOVE,
                "lib/b.ts",
                old_path="src/b.ts",
                new_path="lib/b.ts",
            )
        ]
        assert "Moved:\n  src/b.ts -> lib/b.ts" in format_sync_result(_result(ops))

    def test_affected_nodes_on_delete(self):
        ops = [
            _op(SyncOperationType.DELETE, "a.ts", affected_nodes=["x", "y"])
        ]
        text = format_sync_result(_result(ops))
        assert "Deleted:\n  a.ts (affects 2 nodes)" in text

    def test_skipped_and_warnings(self):
        ops = [SyncOperation.skip(_node("a.ts"), "Element already exists.")]
        text = format_sync_result(
            _result(ops, warnings=["Failed to create b.ts: denied"])
        )
        assert "Skipped:\n  a.ts: Element already exists." in text
        assert "Warnings:\n  Failed to create b.ts: denied" in text

    def test_empty_sections_omitted(self):
        text = format_sync_result(_result())
        for title in ("Renamed:", "Deleted:", "Skipped:", "Warnings:", "Errors:"):
            assert title not in text
        assert not text.endswith("\n")


# ---------------------------------------------------------------------------
# Snapshot history
# ---------------------------------------------------------------------------


class TestSnapshotHistory:
    def test_timestamp_is_utc_iso(self):
        assert format_timestamp(1000) == "1970-01-01T00:00:01.000+00:00"

    def test_empty_history(self):
        assert format_snapshot_history([]) == "No snapshots captured."

    def test_newest_first_in_text(self):
        history = [
            CodebaseSnapshot(timestamp=1000, files={"a.ts": ""}),
            CodebaseSnapshot(timestamp=2000),
        ]
        lines = format_snapshot_history(history).splitlines()
        assert lines[0] == "2 snapshot(s):"
        assert lines[1].startswith("  2000  ")
        assert lines[2].endswith("1 files")

    def test_history_json_oldest_first(self):
        history = [
            CodebaseSnapshot(timestamp=1000, files={"b.ts": "", "a.ts": ""}),
            CodebaseSnapshot(timestamp=2000),
        ]
        data = history_to_json(history)
        assert [s["token"] for s in data["snapshots"]] == ["1000", "2000"]
        assert data["snapshots"][0]["files"] == ["a.ts", "b.ts"]


# ---------------------------------------------------------------------------
# result_to_json
# ---------------------------------------------------------------------------


class TestResultToJson:
    def test_structure(self):
        ops = [
            _op(
                SyncOperationType.RENAME,
                "src/b.ts",
                old_path="src/a.ts",
                new_path="src/b.ts",
            ),
            SyncOperation.skip(_node("note", kind="note"), "Freeform node"),
        ]
        data = result_to_json(
            _result(ops, skipped_nodes=[_node("note", kind="note")])
        )

        assert data["success"] is True
        assert data["revert_token"] == "1700000000000"
        assert data["counts"]["renamed"] == 1
        assert data["counts"]["skipped"] == 1
        assert data["operations"][0] == {
            "type": "rename",
            "node_id": "src/b.ts",
            "name": "b.ts",
            "path": "src/b.ts",
            "old_path": "src/a.ts",
            "new_path": "src/b.ts",
        }
        assert data["operations"][1]["error"] == "Freeform node"
        assert data["skipped_nodes"] == ["note"]

    def test_optional_keys_absent(self):
        data = result_to_json(_result([_op(SyncOperationType.DELETE, "a.ts")]))
        assert set(data["operations"][0]) == {"type", "node_id", "name", "path"}
