"""Schema tree, structural diff and dependency graph data contracts."""

from .models import (
    CODE_ELEMENT_KINDS,
    STRUCTURAL_KINDS,
    DependencyEdge,
    DependencyGraph,
    DependencyNode,
    NodeKind,
    RenamedNode,
    SchemaNode,
    SchemaTree,
    StructuralDiff,
)

__all__ = [
    "CODE_ELEMENT_KINDS",
    "DependencyEdge",
    "DependencyGraph",
    "DependencyNode",
    "NodeKind",
    "RenamedNode",
    "STRUCTURAL_KINDS",
    "SchemaNode",
    "SchemaTree",
    "StructuralDiff",
]
