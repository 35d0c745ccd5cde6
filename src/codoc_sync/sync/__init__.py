"""Schema-to-filesystem reconciliation engine.

Public API for applying a structural schema diff to a workspace.

Architecture
------------
The engine is **tolerant, not transactional**: every diff entry is applied
in isolation and a failure becomes a ``skip`` operation plus a warning.
A snapshot taken before any mutation makes the batch revertible.

Modules:

- ``engine``       -- ``ReconciliationEngine``: orders and applies operations.
- ``registry``     -- ``CodeElementRegistry``: per-file known element names.
- ``snapshots``    -- ``SnapshotStore``: bounded capture/revert history.
- ``dependencies`` -- ``DependencyResolver``: downstream lookup.
- ``mutator``      -- ``CodeMutator``: structural (tree-sitter) edits with a
  textual fallback.
- ``placeholders`` -- placeholder bodies and file templates.
- ``paths``        -- owning-file resolution.
- ``models``       -- ``SyncOperation``, ``SyncResult``, ``CodebaseSnapshot``.
- ``reporter``     -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from codoc_sync.schema import SchemaTree, StructuralDiff
    from codoc_sync.sync import ReconciliationEngine, format_sync_result

    engine = ReconciliationEngine(Path("/work/project"))
    result = await engine.reconcile(
        StructuralDiff.from_payload(diff_json),
        SchemaTree.from_payload(schema_json),
    )
    print(format_sync_result(result))

    # Undo the whole batch
    await engine.revert_to_snapshot(result.revert_token)
"""

from .dependencies import DependencyResolver
from .engine import ReconciliationEngine
from .models import (
    CodebaseSnapshot,
    SyncOperation,
    SyncOperationType,
    SyncResult,
)
from .mutator import CodeMutator, ElementNotFoundError
from .registry import CodeElementRegistry
from .reporter import (
    format_snapshot_history,
    format_sync_result,
    history_to_json,
    result_to_json,
)
from .snapshots import SnapshotStore

__all__ = [
    "CodeElementRegistry",
    "CodeMutator",
    "CodebaseSnapshot",
    "DependencyResolver",
    "ElementNotFoundError",
    "ReconciliationEngine",
    "SnapshotStore",
    "SyncOperation",
    "SyncOperationType",
    "SyncResult",
    "format_snapshot_history",
    "format_sync_result",
    "history_to_json",
    "result_to_json",
]
