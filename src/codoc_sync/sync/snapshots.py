"""Snapshot store for retroactive rollback of a reconciliation batch.

Keeps a bounded, in-memory history of ``CodebaseSnapshot`` captures.  Each
capture records the content of every ``file`` node reachable in the schema
at that moment; files that do not exist yet are simply omitted.

Key design choices:

* **Bounded history** -- the oldest snapshot is evicted once the history
  exceeds ``max_history`` (default 10).
* **Unique tokens** -- timestamps are epoch milliseconds, bumped by one when
  two captures land in the same millisecond, so every token identifies
  exactly one snapshot.
* **Content-only revert** -- revert rewrites every captured file with its
  captured content and encoding.  It does not delete files created after
  the snapshot, nor recreate files deleted and not captured.  This is a
  documented limitation, not a full point-in-time restore.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from codoc_sync.file_handler import (
    read_file_async,
    resolve_in_workspace,
    write_file_async,
)
from codoc_sync.schema.models import SchemaTree
from codoc_sync.sync.models import CodebaseSnapshot

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY = 10


class SnapshotStore:
    """Capture, list and revert codebase snapshots for one workspace.

    Args:
        workspace_root: Resolved workspace root directory.
        max_history: Maximum number of snapshots kept.
    """

    def __init__(
        self,
        workspace_root: Path,
        max_history: int = DEFAULT_MAX_HISTORY,
    ) -> None:
        if max_history < 1:
            raise ValueError(
                f"max_history must be at least 1, got {max_history}"
            )
        self._root = workspace_root
        self._max_history = max_history
        self._history: list[CodebaseSnapshot] = []
        self._last_timestamp = 0

    @property
    def max_history(self) -> int:
        return self._max_history

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    async def capture(self, schema: SchemaTree) -> CodebaseSnapshot:
        """Capture every ``file`` node of *schema* and push it to history.

        Missing or unreadable files are omitted.  A path that escapes the
        workspace is logged and omitted.

        Returns:
            The new snapshot.
        """
        files: dict[str, str] = {}
        encodings: dict[str, str] = {}

        for node in schema.files():
            if node.path in files:
                continue
            try:
                abs_path = resolve_in_workspace(self._root, node.path)
            except ValueError as exc:
                logger.warning("Snapshot skipped %s: %s", node.path, exc)
                continue
            try:
                content, encoding = await read_file_async(abs_path)
            except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
                # File doesn't exist yet
                continue
            files[node.path] = content
            encodings[node.path] = encoding

        snapshot = CodebaseSnapshot(
            timestamp=self._next_timestamp(),
            files=files,
            encodings=encodings,
            structure=schema.model_copy(deep=True),
        )
        self._push(snapshot)
        logger.info(
            "Captured snapshot %s (%d files)", snapshot.token, len(files)
        )
        return snapshot

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def history(self) -> list[CodebaseSnapshot]:
        """Return a copy of the history, oldest first."""
        return list(self._history)

    def get(self, token: str) -> CodebaseSnapshot | None:
        """Return the snapshot identified by *token*, or ``None``."""
        try:
            timestamp = int(token)
        except (TypeError, ValueError):
            return None
        for snapshot in self._history:
            if snapshot.timestamp == timestamp:
                return snapshot
        return None

    def clear(self) -> None:
        """Drop every snapshot."""
        self._history.clear()

    # ------------------------------------------------------------------
    # Revert
    # ------------------------------------------------------------------

    async def revert(self, token: str) -> bool:
        """Restore every captured file of the snapshot *token*.

        Returns:
            ``True`` on success, ``False`` if no snapshot matches *token* or
            a file could not be restored.
        """
        snapshot = self.get(token)
        if snapshot is None:
            logger.warning("No snapshot matches revert token %s", token)
            return False

        try:
            for rel_path, content in snapshot.files.items():
                abs_path = resolve_in_workspace(self._root, rel_path)
                encoding = snapshot.encodings.get(rel_path, "utf-8")
                await write_file_async(abs_path, content, encoding)
        except (OSError, ValueError) as exc:
            logger.error("Failed to revert snapshot %s: %s", token, exc)
            return False

        logger.info(
            "Reverted %d files to snapshot %s",
            len(snapshot.files),
            token,
        )
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _push(self, snapshot: CodebaseSnapshot) -> None:
        self._history.append(snapshot)
        while len(self._history) > self._max_history:
            evicted = self._history.pop(0)
            logger.debug("Evicted snapshot %s", evicted.token)

    def _next_timestamp(self) -> int:
        timestamp = int(time.time() * 1000)
        if timestamp <= self._last_timestamp:
            timestamp = self._last_timestamp + 1
        self._last_timestamp = timestamp
        return timestamp
