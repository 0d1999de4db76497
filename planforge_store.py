"""
PlanGraph: the caller-side owner of the node and edge collections.

The canvas controller never mutates the graph itself; it emits change batches.
PlanGraph is the store those batches land in, plays the part of the
application page that feeds the canvas, and tells its listeners when the
graph moved on.
"""

import logging
from typing import Callable, Iterable, List, Optional

from planforge_model import (
    Connection, Edge, EdgeChange, Node, NodeChange, REMOVE,
    apply_edge_changes, apply_node_changes, edge_from_connection,
    edge_from_dict, edge_to_dict, incident_edge_ids, node_from_dict, node_to_dict,
)

logger = logging.getLogger(__name__)


class PlanGraph:
    """Holds the current nodes/edges and applies change batches to them."""

    def __init__(self, nodes: Optional[Iterable[Node]] = None, edges: Optional[Iterable[Edge]] = None,
                 title: str = "Untitled Attack Plan", description: str = ""):
        self.nodes: List[Node] = list(nodes or [])
        self.edges: List[Edge] = list(edges or [])
        self.title = title
        self.description = description
        self._listeners: List[Callable[[List[Node], List[Edge]], None]] = []

    def subscribe(self, listener: Callable[[List[Node], List[Edge]], None]):
        self._listeners.append(listener)

    def unsubscribe(self, listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self):
        for listener in list(self._listeners):
            listener(self.nodes, self.edges)

    def on_nodes_change(self, changes: List[NodeChange]):
        """Applies a node batch, dropping any edge left dangling by a removal."""
        removed = [change.id for change in changes if change.type == REMOVE]
        self.nodes = apply_node_changes(changes, self.nodes)
        if removed:
            dangling = incident_edge_ids(self.edges, removed)
            if dangling:
                logger.debug("Cascading removal of %d dangling edge(s)", len(dangling))
                self.edges = apply_edge_changes([EdgeChange.remove(edge_id) for edge_id in dangling], self.edges)
        self._notify()

    def on_edges_change(self, changes: List[EdgeChange]):
        self.edges = apply_edge_changes(changes, self.edges)
        self._notify()

    def on_connect(self, connection: Connection):
        edge = edge_from_connection(connection)
        self.on_edges_change([EdgeChange.add(edge)])
        return edge

    def replace(self, nodes: Iterable[Node], edges: Iterable[Edge]):
        """Swaps in a whole new graph (e.g. a plan loaded by the caller)."""
        self.nodes = list(nodes)
        node_ids = {node.id for node in self.nodes}
        self.edges = [edge for edge in edges if edge.source in node_ids and edge.target in node_ids]
        self._notify()

    def clear(self):
        self.replace([], [])

    def node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_dict(self):
        return {
            "title": self.title,
            "description": self.description,
            "nodes": [node_to_dict(node) for node in self.nodes],
            "edges": [edge_to_dict(edge) for edge in self.edges],
        }

    @classmethod
    def from_dict(cls, data):
        """Builds a graph from a snapshot; edges pointing at missing nodes are dropped."""
        graph = cls(
            title=data.get("title", "Untitled Attack Plan"),
            description=data.get("description", ""),
        )
        graph.replace(
            [node_from_dict(item) for item in data.get("nodes", [])],
            [edge_from_dict(item) for item in data.get("edges", [])],
        )
        return graph
