"""Pydantic models for the reconciliation engine.

Defines the core data contracts used across all sync modules:

- ``SyncOperationType``: Enum of possible file-system/code operations.
- ``SyncOperation``: The outcome recorded for one processed diff entry.
- ``SyncResult``: Aggregate report for a full reconciliation call.
- ``CodebaseSnapshot``: Point-in-time capture of schema file contents.
- ``Applied`` / ``Failed``: Tagged outcome returned by node-level mutation
  functions.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field

from codoc_sync.schema.models import SchemaNode, SchemaTree


class SyncOperationType(str, Enum):
    """Possible operations applied to the file system."""

    CREATE_FILE = "create-file"
    CREATE_FOLDER = "create-folder"
    CREATE_PLACEHOLDER = "create-placeholder"
    DELETE = "delete"
    RENAME = "rename"
    MOVE = "move"
    SKIP = "skip"


class SyncOperation(BaseModel):
    """Outcome for one processed diff entry.

    Attributes:
        type: Operation that was performed (``SKIP`` on failure).
        node: The schema node the operation applies to.
        old_path: Previous path for renames/moves.
        new_path: New path for renames/moves.
        affected_nodes: Downstream node identifiers (removals only).
        error: Skip reason or error text.
    """

    type: SyncOperationType
    node: SchemaNode
    old_path: str | None = None
    new_path: str | None = None
    affected_nodes: list[str] = Field(default_factory=list)
    error: str | None = None

    model_config = {"frozen": True}

    @classmethod
    def skip(cls, node: SchemaNode, reason: str) -> SyncOperation:
        """Build a ``SKIP`` operation carrying *reason*."""
        return cls(type=SyncOperationType.SKIP, node=node, error=reason)


class SyncResult(BaseModel):
    """Aggregate report for one ``reconcile`` call.

    ``success`` is true iff ``errors`` is empty.  Warnings and skips do not
    count as failure, so a successful result means "mostly applied, inspect
    warnings", not "fully applied".

    Attributes:
        success: No batch-fatal error occurred.
        operations: One operation per processed diff entry, in order.
        errors: Batch-fatal error messages.
        warnings: Per-node failure and best-effort messages.
        skipped_nodes: Non-structural nodes that never touched the disk.
        revert_token: Token of the snapshot taken before any mutation.
        started_at: ISO 8601 timestamp when reconciliation started.
        completed_at: ISO 8601 timestamp when reconciliation completed.
    """

    success: bool
    operations: list[SyncOperation] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    skipped_nodes: list[SchemaNode] = Field(default_factory=list)
    revert_token: str | None = None
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def of_type(self, op_type: SyncOperationType) -> list[SyncOperation]:
        """Operations whose type is *op_type*."""
        return [op for op in self.operations if op.type == op_type]

    @property
    def created(self) -> list[SyncOperation]:
        """Folder, file and placeholder creations."""
        kinds = {
            SyncOperationType.CREATE_FOLDER,
            SyncOperationType.CREATE_FILE,
            SyncOperationType.CREATE_PLACEHOLDER,
        }
        return [op for op in self.operations if op.type in kinds]

    @property
    def deleted(self) -> list[SyncOperation]:
        return self.of_type(SyncOperationType.DELETE)

    @property
    def renamed(self) -> list[SyncOperation]:
        """Renames and moves."""
        return [
            op
            for op in self.operations
            if op.type in (SyncOperationType.RENAME, SyncOperationType.MOVE)
        ]

    @property
    def skipped(self) -> list[SyncOperation]:
        return self.of_type(SyncOperationType.SKIP)

    def summary(self) -> str:
        """Format a human-readable summary of the reconciliation.

        Returns:
            Multi-line summary string with counts by operation kind.
        """
        lines = [
            "Schema sync " + ("succeeded" if self.success else "failed"),
            f"  Created:  {len(self.created)}",
            f"  Deleted:  {len(self.deleted)}",
            f"  Renamed:  {len(self.renamed)}",
            f"  Skipped:  {len(self.skipped)}",
            f"  Warnings: {len(self.warnings)}",
            f"  Errors:   {len(self.errors)}",
            f"  Total:    {len(self.operations)}",
        ]
        return "\n".join(lines)


class CodebaseSnapshot(BaseModel):
    """Point-in-time capture of every file the schema references.

    Attributes:
        timestamp: Capture time in epoch milliseconds; doubles as the
            revert token.
        files: Relative file path -> content at capture time.
        encodings: Relative file path -> detected encoding.
        structure: Copy of the schema tree at capture time.
    """

    timestamp: int
    files: dict[str, str] = Field(default_factory=dict)
    encodings: dict[str, str] = Field(default_factory=dict)
    structure: SchemaTree = Field(default_factory=SchemaTree)

    model_config = {"frozen": True}

    @property
    def token(self) -> str:
        """Revert token identifying this snapshot."""
        return str(self.timestamp)


# ---------------------------------------------------------------------------
# Node-level outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Applied:
    """A node-level mutation succeeded and produced *operation*."""

    operation: SyncOperation


@dataclass(frozen=True, slots=True)
class Failed:
    """A node-level mutation failed for *reason*."""

    reason: str


NodeOutcome = Applied | Failed
