"""Owning-file resolution for schema nodes.

A ``function`` / ``component`` node belongs to exactly one ``file`` node.
The owner is found, in order, by:

1. walking the ``parent_id`` chain to the nearest ``file`` ancestor,
2. splitting a composite ``file-path#element-name`` path,
3. treating the node's own path as a file path when it ends in a
   recognised source extension.

Parent lookups go through a plain mapping so the caller decides which
schema (previous or current) a node's ancestors are resolved against.
"""

from __future__ import annotations

import posixpath
from collections import ChainMap
from typing import Iterable, Mapping

from codoc_sync.schema.models import (
    NodeKind,
    SchemaNode,
    SchemaTree,
    StructuralDiff,
)

DEFAULT_SOURCE_EXTENSIONS: tuple[str, ...] = (
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    ".py",
    ".java",
    ".go",
    ".rs",
    ".cpp",
    ".c",
    ".h",
)


def split_composite_path(path: str) -> tuple[str, str | None]:
    """Split ``src/a.ts#render`` into ``("src/a.ts", "render")``."""
    if "#" not in path:
        return path, None
    file_path, _, element = path.partition("#")
    return file_path, element or None


def file_extension(path: str) -> str:
    """Return the lower-cased extension of *path* (``""`` when none)."""
    file_path, _ = split_composite_path(path)
    return posixpath.splitext(file_path)[1].lower()


def parent_dir(path: str) -> str:
    """Return the parent directory of a workspace-relative path."""
    return posixpath.dirname(path.rstrip("/"))


def is_source_file(
    path: str, extensions: Iterable[str] = DEFAULT_SOURCE_EXTENSIONS
) -> bool:
    """True when *path* ends in one of *extensions*."""
    return any(path.endswith(ext) for ext in extensions)


def is_under(path: str, prefix: str) -> bool:
    """True when *path* equals *prefix* or lives below it."""
    prefix = prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


def resolve_file_path(
    node: SchemaNode,
    lookup: Mapping[str, SchemaNode],
    extensions: Iterable[str] = DEFAULT_SOURCE_EXTENSIONS,
) -> str | None:
    """Return the workspace-relative path of *node*'s owning file.

    Args:
        node: The node to resolve (usually a code element).
        lookup: Identifier -> node mapping used to follow ``parent_id``.
        extensions: Extensions that mark a bare path as a file path.

    Returns:
        The owning file path, or ``None`` when it cannot be determined.
    """
    seen = {node.id}
    current = lookup.get(node.parent_id) if node.parent_id else None
    while current is not None and current.id not in seen:
        if current.kind == NodeKind.FILE.value:
            return current.path
        seen.add(current.id)
        current = (
            lookup.get(current.parent_id) if current.parent_id else None
        )

    if node.path and "#" in node.path:
        file_path, _ = split_composite_path(node.path)
        return file_path or None

    if node.path and is_source_file(node.path, extensions):
        return node.path

    return None


def build_lookup(
    schema: SchemaTree, diff: StructuralDiff
) -> Mapping[str, SchemaNode]:
    """Build the parent lookup used for one reconciliation.

    The current schema wins.  Nodes only the diff knows about (removed
    files, rename sources) fill the gaps so elements of a removed file
    still resolve to it.
    """
    diff_nodes: dict[str, SchemaNode] = {}
    for node in diff.nodes():
        diff_nodes.setdefault(node.id, node)
    return ChainMap(schema.nodes, diff_nodes)
