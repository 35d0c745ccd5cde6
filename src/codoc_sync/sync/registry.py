"""Code element registry.

Tracks which top-level element names are known to exist in each file so
the engine can short-circuit duplicate creation without re-reading file
content.  The registry is advisory: the engine confirms against the actual
file buffer before skipping an addition, because manual edits can make it
stale.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from codoc_sync.schema.models import SchemaNode, SchemaTree
from codoc_sync.sync.paths import (
    DEFAULT_SOURCE_EXTENSIONS,
    is_under,
    resolve_file_path,
)

logger = logging.getLogger(__name__)


class CodeElementRegistry:
    """Per-file set of known top-level code element names.

    Args:
        source_extensions: Extensions that let a bare node path count as a
            file path during ``rebuild``.
    """

    def __init__(
        self,
        source_extensions: Iterable[str] = DEFAULT_SOURCE_EXTENSIONS,
    ) -> None:
        self._source_extensions = tuple(source_extensions)
        self._entries: dict[str, set[str]] = {}

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def rebuild(
        self,
        schema: SchemaTree,
        lookup: Mapping[str, SchemaNode] | None = None,
    ) -> None:
        """Replace the registry contents from *schema*.

        Every non-freeform ``function`` / ``component`` node is recorded
        under its owning file.  Nodes whose file cannot be resolved are
        ignored.

        Args:
            schema: The current schema tree.
            lookup: Parent lookup; defaults to ``schema.nodes``.
        """
        self._entries.clear()
        lookup = lookup if lookup is not None else schema.nodes
        for node in schema.walk():
            if not node.is_code_element or node.is_freeform_like:
                continue
            file_path = resolve_file_path(
                node, lookup, self._source_extensions
            )
            if file_path is None:
                logger.debug(
                    "Registry: no owning file for %s (%s)",
                    node.name,
                    node.id,
                )
                continue
            self.add(file_path, node.name)
        logger.debug(
            "Registry rebuilt: %d files, %d elements",
            len(self._entries),
            sum(len(names) for names in self._entries.values()),
        )

    def reset(self) -> None:
        """Forget every entry."""
        self._entries.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has(self, file_path: str, name: str) -> bool:
        """Return ``True`` if *name* is known to exist in *file_path*."""
        return name in self._entries.get(file_path, ())

    def names(self, file_path: str) -> frozenset[str]:
        """Return the names known for *file_path*."""
        return frozenset(self._entries.get(file_path, ()))

    def files(self) -> list[str]:
        """Return every file path with at least one entry."""
        return sorted(self._entries)

    def __len__(self) -> int:
        return sum(len(names) for names in self._entries.values())

    # ------------------------------------------------------------------
    # Incremental updates
    # ------------------------------------------------------------------

    def add(self, file_path: str, name: str) -> None:
        """Record *name* as present in *file_path*."""
        self._entries.setdefault(file_path, set()).add(name)

    def remove(self, file_path: str, name: str) -> None:
        """Forget *name* in *file_path*.  No-op if absent."""
        names = self._entries.get(file_path)
        if names is None:
            return
        names.discard(name)
        if not names:
            del self._entries[file_path]

    def remove_file(self, file_path: str) -> None:
        """Forget every name recorded for *file_path*."""
        self._entries.pop(file_path, None)

    def remove_tree(self, dir_path: str) -> None:
        """Forget every file at or below *dir_path*."""
        for key in [k for k in self._entries if is_under(k, dir_path)]:
            del self._entries[key]

    def move_file(self, old_path: str, new_path: str) -> None:
        """Move the entry for *old_path* to *new_path*.

        Names already recorded for *new_path* are kept.
        """
        names = self._entries.pop(old_path, None)
        if names:
            self._entries.setdefault(new_path, set()).update(names)

    def move_tree(self, old_dir: str, new_dir: str) -> None:
        """Re-key every file below *old_dir* to live below *new_dir*."""
        old_dir = old_dir.rstrip("/")
        new_dir = new_dir.rstrip("/")
        for key in [k for k in self._entries if is_under(k, old_dir)]:
            self.move_file(key, new_dir + key[len(old_dir) :])
