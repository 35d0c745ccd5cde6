"""Pydantic models for the declarative schema tree and its inputs.

Defines the data contracts the reconciliation engine consumes:

- ``NodeKind``: Known schema node kinds.
- ``SchemaNode``: One node of the schema tree.
- ``SchemaTree``: Arena of nodes addressed by stable identifier.
- ``RenamedNode`` / ``StructuralDiff``: Added/removed/renamed/modified
  partition between two schema trees.
- ``DependencyNode`` / ``DependencyEdge`` / ``DependencyGraph``: Downstream
  reference graph produced by the analysis side.

Parent/child relations are stored as identifiers only.  A node never holds
a reference to another node object; ``SchemaTree`` owns every node and
relations are lookups into ``SchemaTree.nodes``.

The editor sends camelCase JSON (``type``, ``isFreeform``,
``functionSignature``, nested ``children`` objects).  Validation aliases and
the ``from_payload`` constructors accept that shape directly.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Iterator

from pydantic import AliasChoices, BaseModel, Field


class NodeKind(str, Enum):
    """Schema node kinds understood by the editor."""

    DIRECTORY = "directory"
    FILE = "file"
    FUNCTION = "function"
    COMPONENT = "component"
    REFERENCE = "reference"
    NOTE = "note"
    FREEFORM = "freeform"
    COMMENT = "comment"


STRUCTURAL_KINDS = frozenset(
    {
        NodeKind.DIRECTORY.value,
        NodeKind.FILE.value,
        NodeKind.FUNCTION.value,
        NodeKind.COMPONENT.value,
    }
)
CODE_ELEMENT_KINDS = frozenset(
    {NodeKind.FUNCTION.value, NodeKind.COMPONENT.value}
)


# ---------------------------------------------------------------------------
# Schema nodes
# ---------------------------------------------------------------------------


class SchemaNode(BaseModel):
    """A node in the declarative schema tree.

    Attributes:
        id: Stable identifier.
        kind: Node kind (see ``NodeKind``); unknown kinds are kept verbatim
            and treated as non-structural.
        name: Display / declaration name.
        path: Workspace-relative path, or ``file-path#element-name`` for
            code elements.
        extension: Optional file extension (``.ts``).
        parent_id: Identifier of the owning node, if any.
        children_ids: Ordered identifiers of owned children.
        content: Optional raw content carried by the editor.
        function_signature: Declared parameter list / return type.
        component_props: Declared component props.
        is_exported: Whether the element is exported.
        is_freeform: Node is freeform text with no file-system meaning.
        is_unrecognized: Node could not be matched to the codebase.
        is_comment: Node is a comment line.
    """

    id: str
    kind: str = Field(validation_alias=AliasChoices("kind", "type"))
    name: str
    path: str = ""
    extension: str | None = None
    parent_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("parent_id", "parentId"),
    )
    children_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("children_ids", "childrenIds"),
    )
    content: str | None = None
    function_signature: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "function_signature", "functionSignature"
        ),
    )
    component_props: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "component_props", "componentProps"
        ),
    )
    is_exported: bool | None = Field(
        default=None,
        validation_alias=AliasChoices("is_exported", "isExported"),
    )
    is_freeform: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_freeform", "isFreeform"),
    )
    is_unrecognized: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "is_unrecognized", "isUnrecognized"
        ),
    )
    is_comment: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_comment", "isComment"),
    )

    model_config = {"frozen": True}

    @classmethod
    def from_payload(
        cls, data: dict[str, Any], parent_id: str | None = None
    ) -> SchemaNode:
        """Build a node from editor JSON.

        Nested ``children`` objects are reduced to their identifiers and a
        ``parent`` object (the editor's back-reference) is reduced to its
        identifier.  *parent_id* wins over anything in *data*.
        """
        fields = {
            k: v
            for k, v in data.items()
            if k not in ("children", "parent")
        }
        children = data.get("children") or []
        if children and not (
            "children_ids" in fields or "childrenIds" in fields
        ):
            fields["children_ids"] = [
                c["id"] if isinstance(c, dict) else str(c)
                for c in children
            ]

        if parent_id is None:
            parent = data.get("parent")
            if isinstance(parent, dict):
                parent_id = parent.get("id")
            elif isinstance(parent, str):
                parent_id = parent
        if parent_id is not None:
            fields.pop("parentId", None)
            fields["parent_id"] = parent_id

        return cls.model_validate(fields)

    @property
    def is_code_element(self) -> bool:
        """True for ``function`` and ``component`` nodes."""
        return self.kind in CODE_ELEMENT_KINDS

    @property
    def is_freeform_like(self) -> bool:
        """True when any flag marks the node as having no file-system form."""
        return (
            self.is_freeform
            or self.is_unrecognized
            or self.is_comment
            or self.kind
            in (NodeKind.FREEFORM.value, NodeKind.COMMENT.value)
        )

    @property
    def is_structural(self) -> bool:
        """True when the node may reach a mutating file-system operation."""
        return self.kind in STRUCTURAL_KINDS and not self.is_freeform_like


# ---------------------------------------------------------------------------
# Schema tree (arena)
# ---------------------------------------------------------------------------


class SchemaTree(BaseModel):
    """Arena of schema nodes keyed by identifier.

    Attributes:
        nodes: Every node of the tree, keyed by ``SchemaNode.id``.
        root_ids: Identifiers of top-level nodes, in document order.
    """

    nodes: dict[str, SchemaNode] = Field(default_factory=dict)
    root_ids: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @classmethod
    def from_payload(cls, roots: list[dict[str, Any]]) -> SchemaTree:
        """Flatten the editor's nested node list into an arena.

        Raises:
            ValueError: If two nodes share an identifier.
        """
        nodes: dict[str, SchemaNode] = {}
        root_ids: list[str] = []

        stack: list[tuple[dict[str, Any], str | None]] = [
            (data, None) for data in reversed(roots)
        ]
        while stack:
            data, parent_id = stack.pop()
            node = SchemaNode.from_payload(data, parent_id)
            if node.id in nodes:
                raise ValueError(f"Duplicate schema node id: {node.id}")
            nodes[node.id] = node
            if parent_id is None:
                root_ids.append(node.id)
            children = [
                c for c in data.get("children") or [] if isinstance(c, dict)
            ]
            for child in reversed(children):
                stack.append((child, node.id))

        return cls(nodes=nodes, root_ids=root_ids)

    @classmethod
    def from_nodes(cls, nodes: Iterable[SchemaNode]) -> SchemaTree:
        """Build an arena from a flat node list linked by ``parent_id``.

        Children missing from a parent's ``children_ids`` are appended in
        input order.  Nodes whose parent is absent become roots.
        """
        arena: dict[str, SchemaNode] = {}
        order: list[str] = []
        for node in nodes:
            if node.id in arena:
                raise ValueError(f"Duplicate schema node id: {node.id}")
            arena[node.id] = node
            order.append(node.id)

        root_ids: list[str] = []
        for node_id in order:
            node = arena[node_id]
            parent = (
                arena.get(node.parent_id) if node.parent_id else None
            )
            if parent is None:
                root_ids.append(node_id)
                continue
            if node_id not in parent.children_ids:
                arena[parent.id] = parent.model_copy(
                    update={
                        "children_ids": [*parent.children_ids, node_id]
                    }
                )

        return cls(nodes=arena, root_ids=root_ids)

    def get(self, node_id: str | None) -> SchemaNode | None:
        """Return the node with *node_id*, or ``None``."""
        if node_id is None:
            return None
        return self.nodes.get(node_id)

    def parent_of(self, node: SchemaNode) -> SchemaNode | None:
        """Return the parent of *node*, or ``None`` for roots."""
        return self.get(node.parent_id)

    def children_of(self, node: SchemaNode) -> list[SchemaNode]:
        """Return the children of *node* in declared order."""
        return [
            self.nodes[cid] for cid in node.children_ids if cid in self.nodes
        ]

    def walk(self) -> Iterator[SchemaNode]:
        """Yield every reachable node depth-first, parents before children."""
        seen: set[str] = set()
        stack = list(reversed(self.root_ids))
        while stack:
            node_id = stack.pop()
            if node_id in seen:
                continue
            node = self.nodes.get(node_id)
            if node is None:
                continue
            seen.add(node_id)
            yield node
            stack.extend(reversed(node.children_ids))

    def ancestors(self, node: SchemaNode) -> Iterator[SchemaNode]:
        """Yield the parent chain of *node*, nearest first."""
        seen = {node.id}
        current = self.parent_of(node)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            yield current
            current = self.parent_of(current)

    def files(self) -> list[SchemaNode]:
        """Return every reachable node of kind ``file``."""
        return [n for n in self.walk() if n.kind == NodeKind.FILE.value]


# ---------------------------------------------------------------------------
# Structural diff
# ---------------------------------------------------------------------------


class RenamedNode(BaseModel):
    """A before/after pair detected as a rename or relocation.

    Attributes:
        from_node: Node as it was in the previous schema.
        to_node: Node as it is in the current schema.
        confidence: 0-1 match confidence reported by the diff engine.
    """

    from_node: SchemaNode = Field(
        validation_alias=AliasChoices("from_node", "from")
    )
    to_node: SchemaNode = Field(
        validation_alias=AliasChoices("to_node", "to")
    )
    confidence: float = 1.0

    model_config = {"frozen": True}


class StructuralDiff(BaseModel):
    """Added/removed/renamed/modified partition between two schemas.

    Lives for one reconciliation call and is never persisted.
    """

    added: list[SchemaNode] = Field(default_factory=list)
    removed: list[SchemaNode] = Field(default_factory=list)
    renamed: list[RenamedNode] = Field(default_factory=list)
    modified: list[SchemaNode] = Field(default_factory=list)

    model_config = {"frozen": True}

    @classmethod
    def from_payload(cls, data: dict[str, Any] | None) -> StructuralDiff:
        """Build a diff from editor JSON (camelCase nodes, nested children)."""
        data = data or {}
        renamed = []
        for pair in data.get("renamed") or []:
            renamed.append(
                RenamedNode(
                    from_node=SchemaNode.from_payload(
                        pair.get("from") or pair["from_node"]
                    ),
                    to_node=SchemaNode.from_payload(
                        pair.get("to") or pair["to_node"]
                    ),
                    confidence=pair.get("confidence", 1.0),
                )
            )
        return cls(
            added=[
                SchemaNode.from_payload(n) for n in data.get("added") or []
            ],
            removed=[
                SchemaNode.from_payload(n)
                for n in data.get("removed") or []
            ],
            renamed=renamed,
            modified=[
                SchemaNode.from_payload(n)
                for n in data.get("modified") or []
            ],
        )

    def nodes(self) -> Iterator[SchemaNode]:
        """Yield every node mentioned by the diff."""
        yield from self.added
        yield from self.removed
        for pair in self.renamed:
            yield pair.from_node
            yield pair.to_node
        yield from self.modified

    def is_empty(self) -> bool:
        return not (
            self.added or self.removed or self.renamed or self.modified
        )


# ---------------------------------------------------------------------------
# Dependency graph
# ---------------------------------------------------------------------------


class DependencyNode(BaseModel):
    """One node of the dependency graph.

    Attributes:
        id: Schema node identifier.
        name: Element name.
        kind: Element kind.
        file_path: Owning file.
        upstream: Identifiers this node depends on.
        downstream: Identifiers that depend on this node.
    """

    id: str
    name: str = ""
    kind: str = Field(
        default="", validation_alias=AliasChoices("kind", "type")
    )
    file_path: str = Field(
        default="", validation_alias=AliasChoices("file_path", "filePath")
    )
    upstream: list[str] = Field(default_factory=list)
    downstream: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class DependencyEdge(BaseModel):
    """A directed reference between two graph nodes."""

    from_id: str = Field(validation_alias=AliasChoices("from_id", "from"))
    to_id: str = Field(validation_alias=AliasChoices("to_id", "to"))
    kind: str = Field(
        default="reference", validation_alias=AliasChoices("kind", "type")
    )
    location: dict[str, Any] | None = None

    model_config = {"frozen": True}


class DependencyGraph(BaseModel):
    """Downstream reference graph; read-only to the reconciliation engine."""

    nodes: dict[str, DependencyNode] = Field(default_factory=dict)
    edges: list[DependencyEdge] = Field(default_factory=list)

    model_config = {"frozen": True}

    @classmethod
    def from_payload(cls, data: dict[str, Any] | None) -> DependencyGraph:
        """Build a graph from editor JSON; ``None`` yields an empty graph."""
        if not data:
            return cls()
        nodes = {}
        for node_id, raw in (data.get("nodes") or {}).items():
            raw = {"id": node_id, **raw}
            nodes[node_id] = DependencyNode.model_validate(raw)
        edges = [
            DependencyEdge.model_validate(e) for e in data.get("edges") or []
        ]
        return cls(nodes=nodes, edges=edges)
