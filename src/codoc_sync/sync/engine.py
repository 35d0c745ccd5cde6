"""Reconciliation engine: applies a structural schema diff to the workspace.

The ``ReconciliationEngine`` ties together the registry, snapshot store,
dependency resolver and code mutator into one reconciliation call.  It:

1. Rebuilds the code element registry from the current schema.
2. Captures a snapshot of every schema file (the revert token).
3. Partitions diff entries; non-structural nodes are skipped.
4. Applies renames, then removals, then additions (folders, files, code
   elements batched per owning file), then modifications.
5. Builds and returns a ``SyncResult``.

Error handling is per-node: every node-level function returns ``Applied``
or ``Failed`` and a failure becomes a ``skip`` operation plus a warning.
Only a setup failure (registry rebuild, snapshot capture) is recorded in
``errors`` and flips ``success``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from codoc_sync.file_handler import (
    make_directory_async,
    path_exists_async,
    read_file_async,
    remove_path_async,
    rename_path_async,
    resolve_in_workspace,
    write_file_async,
)
from codoc_sync.schema.models import (
    DependencyGraph,
    NodeKind,
    RenamedNode,
    SchemaNode,
    SchemaTree,
    StructuralDiff,
)
from codoc_sync.sync.dependencies import DependencyResolver
from codoc_sync.sync.models import (
    Applied,
    CodebaseSnapshot,
    Failed,
    NodeOutcome,
    SyncOperation,
    SyncOperationType,
    SyncResult,
)
from codoc_sync.sync.mutator import CodeMutator, ElementNotFoundError
from codoc_sync.sync.paths import (
    DEFAULT_SOURCE_EXTENSIONS,
    build_lookup,
    parent_dir,
    resolve_file_path,
)
from codoc_sync.sync.placeholders import (
    PLACEHOLDER_SENTINEL,
    generate_file_template,
    generate_placeholder,
    is_placeholder,
)
from codoc_sync.sync.registry import CodeElementRegistry
from codoc_sync.sync.snapshots import DEFAULT_MAX_HISTORY, SnapshotStore

logger = logging.getLogger(__name__)

ALREADY_EXISTS = "Element already exists."

# Exceptions a node-level function turns into ``Failed``.
_NODE_ERRORS = (OSError, ValueError, LookupError)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _label(node: SchemaNode) -> str:
    return node.path or node.name


@dataclass
class _Run:
    """Mutable bookkeeping for one ``reconcile`` call."""

    lookup: Mapping[str, SchemaNode]
    graph: DependencyGraph
    operations: list[SyncOperation] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    skipped_nodes: list[SchemaNode] = field(default_factory=list)

    def record(self, node: SchemaNode, verb: str, outcome: NodeOutcome) -> None:
        match outcome:
            case Applied(operation=operation):
                self.operations.append(operation)
                logger.info(
                    "%s %s", operation.type.value, _label(operation.node)
                )
            case Failed(reason=reason):
                self.fail(node, verb, reason)

    def fail(self, node: SchemaNode, verb: str, reason: str) -> None:
        message = f"Failed to {verb} {_label(node)}: {reason}"
        logger.warning(message)
        self.warnings.append(message)
        self.operations.append(SyncOperation.skip(node, reason))

    def skip_unstructured(self, node: SchemaNode) -> None:
        if node.is_freeform_like:
            reason = "Freeform node has no file-system representation."
        else:
            reason = f"Node kind '{node.kind}' is not synchronised."
        logger.debug("Skipping %s (%s): %s", node.name, node.id, reason)
        self.skipped_nodes.append(node)
        self.operations.append(SyncOperation.skip(node, reason))


class ReconciliationEngine:
    """Reconcile schema diffs against one workspace.

    Owns the registry and snapshot history for the lifetime of the
    instance.  Not safe for concurrent ``reconcile`` calls that touch
    overlapping files.

    Args:
        workspace_root: Resolved workspace root directory.
        max_history: Snapshot history capacity.
        source_extensions: Extensions that mark a bare node path as a file.
        sentinel: Placeholder sentinel comment text.
        mutator: Code mutator; defaults to the structural/textual chain.
    """

    def __init__(
        self,
        workspace_root: Path,
        max_history: int = DEFAULT_MAX_HISTORY,
        source_extensions: Iterable[str] = DEFAULT_SOURCE_EXTENSIONS,
        sentinel: str = PLACEHOLDER_SENTINEL,
        mutator: CodeMutator | None = None,
    ) -> None:
        self.workspace_root = workspace_root
        self.source_extensions = tuple(source_extensions)
        self.sentinel = sentinel

        self.registry = CodeElementRegistry(self.source_extensions)
        self.snapshots = SnapshotStore(workspace_root, max_history)
        self.dependencies = DependencyResolver()
        self.mutator = mutator or CodeMutator(sentinel=sentinel)

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def reconcile(
        self,
        diff: StructuralDiff,
        schema: SchemaTree,
        graph: DependencyGraph | None = None,
    ) -> SyncResult:
        """Apply *diff* to the workspace.

        Args:
            diff: Added/removed/renamed/modified nodes.
            schema: The full current schema tree.
            graph: Downstream reference graph, used for removal reporting.

        Returns:
            A ``SyncResult``; ``success`` is false only when setup failed.
        """
        started_at = _now()
        errors: list[str] = []
        revert_token: str | None = None
        run = _Run(
            lookup=build_lookup(schema, diff),
            graph=graph or DependencyGraph(),
        )

        try:
            self.registry.rebuild(schema, run.lookup)
            snapshot = await self.snapshots.capture(schema)
            revert_token = snapshot.token

            await self._process_renames(run, diff.renamed)
            await self._process_removals(run, diff.removed)
            await self._process_additions(run, diff.added)
            await self._process_modifications(run, diff.modified)
        except Exception as exc:
            logger.exception("Schema sync failed")
            errors.append(f"Sync failed: {exc}")

        result = SyncResult(
            success=not errors,
            operations=run.operations,
            errors=errors,
            warnings=run.warnings,
            skipped_nodes=run.skipped_nodes,
            revert_token=revert_token,
            started_at=started_at,
            completed_at=_now(),
        )
        logger.info(
            "Schema sync finished: %d operations, %d warnings, %d errors",
            len(result.operations),
            len(result.warnings),
            len(result.errors),
        )
        return result

    # ------------------------------------------------------------------
    # Snapshot accessors
    # ------------------------------------------------------------------

    async def revert_to_snapshot(self, token: str) -> bool:
        """Restore every file captured by the snapshot *token*."""
        return await self.snapshots.revert(token)

    def get_snapshot_history(self) -> list[CodebaseSnapshot]:
        """Return the snapshot history, oldest first."""
        return self.snapshots.history()

    def clear_history(self) -> None:
        self.snapshots.clear()

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    async def _guarded(self, step: Awaitable[NodeOutcome]) -> NodeOutcome:
        try:
            return await step
        except Exception as exc:
            logger.exception("Unexpected error while syncing node")
            return Failed(str(exc) or type(exc).__name__)

    async def _process_renames(
        self, run: _Run, renamed: list[RenamedNode]
    ) -> None:
        for pair in renamed:
            old, new = pair.from_node, pair.to_node
            if not (old.is_structural and new.is_structural):
                run.skip_unstructured(new if not new.is_structural else old)
                if not (old.is_structural or new.is_structural):
                    run.skipped_nodes.append(old)
                continue
            verb = "rename"
            if parent_dir(old.path) != parent_dir(new.path):
                verb = "move"
            outcome = await self._guarded(self._rename_node(run, old, new))
            run.record(new, verb, outcome)

    async def _process_removals(
        self, run: _Run, removed: list[SchemaNode]
    ) -> None:
        for node in removed:
            if not node.is_structural:
                run.skip_unstructured(node)
                continue
            outcome = await self._guarded(self._remove_node(run, node))
            run.record(node, "delete", outcome)

    async def _process_additions(
        self, run: _Run, added: list[SchemaNode]
    ) -> None:
        folders: list[SchemaNode] = []
        files: list[SchemaNode] = []
        elements: list[SchemaNode] = []
        for node in added:
            if not node.is_structural:
                run.skip_unstructured(node)
            elif node.kind == NodeKind.DIRECTORY.value:
                folders.append(node)
            elif node.kind == NodeKind.FILE.value:
                files.append(node)
            else:
                elements.append(node)

        for node in folders:
            outcome = await self._guarded(self._create_folder(node))
            run.record(node, "create", outcome)

        for node in files:
            outcome = await self._guarded(self._create_file(node))
            run.record(node, "create", outcome)

        batches: dict[str, list[SchemaNode]] = {}
        for node in elements:
            file_path = resolve_file_path(
                node, run.lookup, self.source_extensions
            )
            if file_path is None:
                run.fail(
                    node,
                    "create",
                    f"Could not resolve file path for {node.name}",
                )
                continue
            batches.setdefault(file_path, []).append(node)

        for file_path, nodes in batches.items():
            try:
                await self._add_elements(run, file_path, nodes)
            except Exception as exc:
                logger.exception("Unexpected error adding to %s", file_path)
                for node in nodes:
                    run.fail(node, "create", str(exc))

    async def _process_modifications(
        self, run: _Run, modified: list[SchemaNode]
    ) -> None:
        for node in modified:
            if not node.is_structural:
                run.skip_unstructured(node)
                continue
            if not node.is_code_element:
                continue
            try:
                await self._refresh_placeholder(run, node)
            except Exception as exc:
                message = f"Failed to update {_label(node)}: {exc}"
                logger.warning(message)
                run.warnings.append(message)

    # ------------------------------------------------------------------
    # Renames
    # ------------------------------------------------------------------

    async def _rename_node(
        self, run: _Run, old: SchemaNode, new: SchemaNode
    ) -> NodeOutcome:
        try:
            if new.is_code_element:
                return await self._rename_element(run, old, new)
            return await self._rename_path(old, new)
        except _NODE_ERRORS as exc:
            return Failed(str(exc))

    async def _rename_path(
        self, old: SchemaNode, new: SchemaNode
    ) -> NodeOutcome:
        op_type = (
            SyncOperationType.RENAME
            if parent_dir(old.path) == parent_dir(new.path)
            else SyncOperationType.MOVE
        )
        if old.path != new.path:
            old_abs = resolve_in_workspace(self.workspace_root, old.path)
            new_abs = resolve_in_workspace(self.workspace_root, new.path)
            await make_directory_async(new_abs.parent)
            await rename_path_async(old_abs, new_abs)
            if new.kind == NodeKind.DIRECTORY.value:
                self.registry.move_tree(old.path, new.path)
            else:
                self.registry.move_file(old.path, new.path)
        return Applied(
            SyncOperation(
                type=op_type,
                node=new,
                old_path=old.path,
                new_path=new.path,
            )
        )

    async def _rename_element(
        self, run: _Run, old: SchemaNode, new: SchemaNode
    ) -> NodeOutcome:
        old_file = resolve_file_path(old, run.lookup, self.source_extensions)
        new_file = resolve_file_path(new, run.lookup, self.source_extensions)
        if old_file is None or new_file is None:
            return Failed(f"Could not resolve file path for {new.name}")

        if old_file == new_file:
            abs_path = resolve_in_workspace(self.workspace_root, old_file)
            if old.name != new.name:
                content, encoding = await read_file_async(abs_path)
                updated = self.mutator.rename(
                    content, old.name, new.name, old_file
                )
                await write_file_async(abs_path, updated, encoding)
                self.registry.remove(old_file, old.name)
                self.registry.add(new_file, new.name)
            return Applied(
                SyncOperation(
                    type=SyncOperationType.RENAME,
                    node=new,
                    old_path=old.path or old_file,
                    new_path=new.path or new_file,
                )
            )

        old_abs = resolve_in_workspace(self.workspace_root, old_file)
        new_abs = resolve_in_workspace(self.workspace_root, new_file)
        source, source_encoding = await read_file_async(old_abs)
        code = self.mutator.extract(source, old.name, old.kind, old_file)
        remaining = self.mutator.remove(source, old.name, old.kind, old_file)

        if await path_exists_async(new_abs):
            target, target_encoding = await read_file_async(new_abs)
        else:
            target = generate_file_template(new_file, new.extension)
            target_encoding = "utf-8"
        if old.name != new.name:
            code = self.mutator.rename(code, old.name, new.name, new_file)

        # Target first so a failure never loses the element.
        await write_file_async(
            new_abs, self.mutator.insert(target, code), target_encoding
        )
        await write_file_async(old_abs, remaining, source_encoding)
        self.registry.remove(old_file, old.name)
        self.registry.add(new_file, new.name)
        return Applied(
            SyncOperation(
                type=SyncOperationType.MOVE,
                node=new,
                old_path=old.path or old_file,
                new_path=new.path or new_file,
            )
        )

    # ------------------------------------------------------------------
    # Removals
    # ------------------------------------------------------------------

    async def _remove_node(self, run: _Run, node: SchemaNode) -> NodeOutcome:
        affected = self.dependencies.downstream_of(node.id, run.graph)
        if affected:
            logger.info(
                "Removing %s affects %d downstream nodes",
                node.name,
                len(affected),
            )
        try:
            if node.is_code_element:
                await self._remove_element(run, node)
            else:
                abs_path = resolve_in_workspace(self.workspace_root, node.path)
                removed = await remove_path_async(abs_path)
                if not removed:
                    logger.debug("Already absent: %s", node.path)
                if node.kind == NodeKind.DIRECTORY.value:
                    self.registry.remove_tree(node.path)
                else:
                    self.registry.remove_file(node.path)
        except _NODE_ERRORS as exc:
            return Failed(str(exc))
        return Applied(
            SyncOperation(
                type=SyncOperationType.DELETE,
                node=node,
                old_path=node.path or None,
                affected_nodes=affected,
            )
        )

    async def _remove_element(self, run: _Run, node: SchemaNode) -> None:
        file_path = resolve_file_path(node, run.lookup, self.source_extensions)
        if file_path is None:
            raise ValueError(f"Could not resolve file path for {node.name}")
        abs_path = resolve_in_workspace(self.workspace_root, file_path)
        self.registry.remove(file_path, node.name)
        if not await path_exists_async(abs_path):
            logger.debug("Owning file already absent: %s", file_path)
            return

        content, encoding = await read_file_async(abs_path)
        try:
            updated = self.mutator.remove(
                content, node.name, node.kind, file_path
            )
        except ElementNotFoundError:
            logger.debug("Element already absent: %s", node.name)
            return
        await write_file_async(abs_path, updated, encoding)

    # ------------------------------------------------------------------
    # Additions
    # ------------------------------------------------------------------

    async def _create_folder(self, node: SchemaNode) -> NodeOutcome:
        try:
            abs_path = resolve_in_workspace(self.workspace_root, node.path)
            await make_directory_async(abs_path)
        except _NODE_ERRORS as exc:
            return Failed(str(exc))
        return Applied(
            SyncOperation(
                type=SyncOperationType.CREATE_FOLDER,
                node=node,
                new_path=node.path,
            )
        )

    async def _create_file(self, node: SchemaNode) -> NodeOutcome:
        try:
            abs_path = resolve_in_workspace(self.workspace_root, node.path)
            if await path_exists_async(abs_path):
                logger.debug("File exists, left untouched: %s", node.path)
            else:
                template = generate_file_template(node.path, node.extension)
                await write_file_async(abs_path, template)
        except _NODE_ERRORS as exc:
            return Failed(str(exc))
        return Applied(
            SyncOperation(
                type=SyncOperationType.CREATE_FILE,
                node=node,
                new_path=node.path,
            )
        )

    async def _add_elements(
        self, run: _Run, file_path: str, nodes: list[SchemaNode]
    ) -> None:
        """Insert placeholders for *nodes* with one read and one write."""
        try:
            abs_path = resolve_in_workspace(self.workspace_root, file_path)
            existed = await path_exists_async(abs_path)
            if existed:
                content, encoding = await read_file_async(abs_path)
            else:
                content = generate_file_template(file_path)
                encoding = "utf-8"
        except _NODE_ERRORS as exc:
            for node in nodes:
                run.fail(node, "create", str(exc))
            return

        original = content
        entries: list[tuple[SchemaNode, SyncOperation]] = []
        inserted: list[str] = []
        for node in nodes:
            duplicate = SyncOperation.skip(node, ALREADY_EXISTS)
            try:
                # Registry hit is advisory; confirm against the buffer.
                if self.registry.has(
                    file_path, node.name
                ) and self.mutator.exists(
                    content, node.name, node.kind, file_path
                ):
                    entries.append((node, duplicate))
                    continue
                updated = self.mutator.insert_placeholder(
                    content, node, file_path
                )
                if updated == content:
                    entries.append((node, duplicate))
                    continue
            except Exception as exc:
                logger.warning(
                    "Placeholder for %s failed: %s", node.name, exc
                )
                entries.append((node, SyncOperation.skip(node, str(exc))))
                continue
            content = updated
            inserted.append(node.name)
            self.registry.add(file_path, node.name)
            entries.append(
                (
                    node,
                    SyncOperation(
                        type=SyncOperationType.CREATE_PLACEHOLDER,
                        node=node,
                        new_path=node.path or f"{file_path}#{node.name}",
                    ),
                )
            )

        write_error: str | None = None
        if content != original or not existed:
            try:
                await write_file_async(abs_path, content, encoding)
            except (OSError, ValueError) as exc:
                write_error = str(exc)
                for name in inserted:
                    self.registry.remove(file_path, name)

        for node, operation in entries:
            if operation.type == SyncOperationType.CREATE_PLACEHOLDER:
                if write_error is not None:
                    run.fail(node, "create", write_error)
                else:
                    run.record(node, "create", Applied(operation))
            elif operation.error == ALREADY_EXISTS:
                logger.debug("%s already exists in %s", node.name, file_path)
                run.operations.append(operation)
            else:
                run.fail(node, "create", operation.error or "unknown error")

    # ------------------------------------------------------------------
    # Modifications
    # ------------------------------------------------------------------

    async def _refresh_placeholder(self, run: _Run, node: SchemaNode) -> None:
        """Regenerate *node*'s placeholder if it has not been implemented.

        Hand-written code is left untouched.  A missing file or element
        only produces a warning.
        """
        file_path = resolve_file_path(node, run.lookup, self.source_extensions)
        if file_path is None:
            run.warnings.append(
                f"Failed to update {_label(node)}: could not resolve file path"
            )
            return
        abs_path = resolve_in_workspace(self.workspace_root, file_path)
        if not await path_exists_async(abs_path):
            run.warnings.append(
                f"Failed to update {_label(node)}: {file_path} does not exist"
            )
            return

        content, encoding = await read_file_async(abs_path)
        try:
            current = self.mutator.extract(
                content, node.name, node.kind, file_path
            )
        except ElementNotFoundError as exc:
            run.warnings.append(f"Failed to update {_label(node)}: {exc}")
            return

        if not is_placeholder(current, node, self.sentinel):
            logger.debug("%s is implemented; left untouched", node.name)
            return

        fresh = generate_placeholder(node, file_path, self.sentinel)
        if fresh == current:
            return
        updated = self.mutator.replace(
            content, node.name, node.kind, fresh, file_path
        )
        await write_file_async(abs_path, updated, encoding)
        run.record(
            node,
            "update",
            Applied(
                SyncOperation(
                    type=SyncOperationType.CREATE_PLACEHOLDER,
                    node=node,
                    new_path=node.path or f"{file_path}#{node.name}",
                )
            ),
        )
