"""Graph - Directed call graph container.

Nodes are keyed by a stable id derived from the function they stand for,
edges by the ordered (source, target) pair. Parallel calls collapse into
one edge; a function calling itself becomes a self-loop edge.

Usage:
    graph = Graph()
    graph.add_node(process_form)
    graph.add_node(validate)
    graph.add_edge(process_form, validate)

    graph.node_for(validate).in_edges      # {edge_id: Edge}
    graph.connected_components()           # [Graph, ...]
"""

import hashlib
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Hashable, Iterator, Optional

from callgraph.errors import GraphContractError
from callgraph.geometry import Point


def node_id_for(function: Hashable) -> str:
    """Derive a node id from a function's identity (stable within one run)."""
    digest = hashlib.sha1(repr(function).encode("utf-8")).hexdigest()
    return f"n{digest[:16]}"


def edge_id_for(source_id: str, target_id: str) -> str:
    return f"{source_id}-{target_id}"


@dataclass(eq=False)
class Node:
    """A function in the graph, plus its current and best-ratio coordinates."""

    id: str
    function: Any
    point: Point = Point(0.0, 0.0)
    raw_layout_point: Point = Point(0.0, 0.0)
    out_edges: dict[str, "Edge"] = field(default_factory=dict, repr=False)
    in_edges: dict[str, "Edge"] = field(default_factory=dict, repr=False)

    @property
    def name(self) -> str:
        """Display name, also the primary sort key for deterministic layouts."""
        name = getattr(self.function, "name", None)
        return name if isinstance(name, str) else str(self.function)

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.name, self.id)

    def add_in_edge(self, edge: "Edge") -> None:
        self.in_edges.setdefault(edge.id, edge)

    def add_out_edge(self, edge: "Edge") -> None:
        self.out_edges.setdefault(edge.id, edge)

    def is_self_loop(self, edge: "Edge") -> bool:
        return edge.source is self and edge.target is self

    def neighbors(self) -> list["Node"]:
        """Upstream then downstream neighbours (edges treated as undirected)."""
        upstream = [edge.source for edge in self.in_edges.values()]
        downstream = [edge.target for edge in self.out_edges.values()]
        return upstream + downstream


@dataclass(eq=False)
class Edge:
    """A caller -> callee relationship."""

    id: str
    source: Node
    target: Node

    @property
    def is_self_loop(self) -> bool:
        return self.source is self.target


class Graph:
    """
    Directed graph of functions.

    Mutable while it is being assembled, treated as immutable afterwards:
    connected components are computed once and memoized.
    """

    def __init__(
        self,
        nodes: Optional[dict[str, Node]] = None,
        edges: Optional[dict[str, Edge]] = None,
    ):
        # node id -> Node, in insertion order
        self._nodes: dict[str, Node] = nodes if nodes is not None else {}

        # edge id -> Edge, in insertion order
        self._edges: dict[str, Edge] = edges if edges is not None else {}

        # function -> node id, so lookups never re-derive ids
        self._ids: dict[Any, str] = {node.function: node_id for node_id, node in self._nodes.items()}

        # insertion positions, so components keep the parent order
        self._node_positions: dict[str, int] = {node_id: i for i, node_id in enumerate(self._nodes)}
        self._edge_positions: dict[str, int] = {edge_id: i for i, edge_id in enumerate(self._edges)}

        self._components: Optional[list["Graph"]] = None

    # ── Assembly ───────────────────────────────────────────────

    def add_node(self, function: Hashable) -> Node:
        """Add a node for `function` unless one exists; return the node."""
        node_id = self._ids.get(function)
        if node_id is not None:
            return self._nodes[node_id]

        node_id = node_id_for(function)
        existing = self._nodes.get(node_id)
        if existing is not None:
            raise GraphContractError(
                f"Node id collision between {existing.function!r} and {function!r}"
            )
        node = Node(id=node_id, function=function)
        self._nodes[node_id] = node
        self._ids[function] = node_id
        self._node_positions[node_id] = len(self._node_positions)
        self._components = None
        return node

    def add_edge(self, source_function: Hashable, target_function: Hashable) -> Edge:
        """
        Add the edge source -> target unless it exists; return the edge.

        Raises:
            GraphContractError: If either endpoint was never added
        """
        source = self._require(source_function)
        target = self._require(target_function)
        edge_id = edge_id_for(source.id, target.id)

        edge = self._edges.get(edge_id)
        if edge is None:
            edge = Edge(id=edge_id, source=source, target=target)
            self._edges[edge_id] = edge
            self._edge_positions[edge_id] = len(self._edge_positions)
            source.add_out_edge(edge)
            target.add_in_edge(edge)
            self._components = None
        return edge

    def _require(self, function: Hashable) -> Node:
        node_id = self._ids.get(function)
        if node_id is None:
            raise GraphContractError(f"Edge endpoint {function!r} was never added to the graph")
        return self._nodes[node_id]

    # ── Lookup ─────────────────────────────────────────────────

    def get_node(self, node_id: str) -> Node:
        """Get a node by id (KeyError if absent)."""
        return self._nodes[node_id]

    def get_edge(self, edge_id: str) -> Edge:
        return self._edges[edge_id]

    def node_for(self, function: Hashable) -> Optional[Node]:
        """Get the node standing for `function`, if any."""
        node_id = self._ids.get(function)
        return self._nodes[node_id] if node_id is not None else None

    def has_function(self, function: Hashable) -> bool:
        return function in self._ids

    @property
    def nodes(self) -> list[Node]:
        return list(self._nodes.values())

    @property
    def edges(self) -> list[Edge]:
        return list(self._edges.values())

    @property
    def functions(self) -> set:
        return set(self._ids)

    def __contains__(self, function: Hashable) -> bool:
        return self.has_function(function)

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes.values())

    # ── Components ─────────────────────────────────────────────

    def connected_components(self) -> list["Graph"]:
        """
        Split the graph into maximal weakly-connected subgraphs.

        Components are ordered by their first-inserted node. Each one shares
        Node and Edge objects with this graph.
        """
        if self._components is None:
            visited: set[str] = set()
            components = []
            for node in self._nodes.values():
                if node.id in visited:
                    continue
                members = self._traverse(node, visited)
                members.sort(key=lambda n: self._node_positions[n.id])
                edges = [edge for member in members for edge in member.out_edges.values()]
                edges.sort(key=lambda e: self._edge_positions[e.id])
                components.append(Graph(
                    {member.id: member for member in members},
                    {edge.id: edge for edge in edges},
                ))
            self._components = components
        return list(self._components)

    @staticmethod
    def _traverse(root: Node, visited: set[str]) -> list[Node]:
        """Breadth-first walk over undirected adjacency, marking visited ids."""
        members = [root]
        visited.add(root.id)
        queue = deque([root])
        while queue:
            node = queue.popleft()
            for neighbor in node.neighbors():
                if neighbor.id not in visited:
                    visited.add(neighbor.id)
                    members.append(neighbor)
                    queue.append(neighbor)
        return members
