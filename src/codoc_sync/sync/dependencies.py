"""Downstream dependency lookup for removal reporting."""

from __future__ import annotations

from codoc_sync.schema.models import DependencyGraph


class DependencyResolver:
    """Report which nodes reference a node that is about to be removed.

    Pure lookup over a read-only ``DependencyGraph``.  The engine uses it to
    report blast radius; removal proceeds whether or not dependents exist.
    """

    def downstream_of(
        self, node_id: str, graph: DependencyGraph
    ) -> list[str]:
        """Return identifiers of nodes that depend on *node_id*.

        Returns an empty list when *node_id* is not in the graph.
        """
        entry = graph.nodes.get(node_id)
        if entry is None:
            return []
        return list(entry.downstream)
