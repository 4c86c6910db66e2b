"""Canvas - interactive view state over a laid-out Graph.

Holds everything a renderer needs besides the pixels: the camera
transform, which nodes and edges are visible, which nodes are focused or
hovered, and how each visible edge should be classified for colouring.

Usage:
    canvas = Canvas(inset=0.1)
    canvas.reset(graph)
    canvas.set_access_filter({"public", "protected"})
    canvas.zoom_by_wheel(anchor=(400, 300), rotation=-1)
    node = canvas.node_at((412, 296), viewport_size=(800, 600))
"""

import logging
import math
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from callgraph.analysis.graph import Edge, Graph, Node
from callgraph.geometry import Point
from callgraph.layout.normalizer import fit_to_viewport
from callgraph.view.transform import ViewTransform

logger = logging.getLogger(__name__)

NodePredicate = Callable[[Node], bool]


class EdgeDirection(Enum):
    """How an edge relates to the highlighted (focused or hovered) nodes."""

    UPSTREAM = "upstream"
    DOWNSTREAM = "downstream"
    NONE = "none"
    SELF_LOOP = "self_loop"


class Canvas:
    """View state for one graph at a time."""

    def __init__(
        self,
        transform: Optional[ViewTransform] = None,
        inset: float = 0.1,
        wheel_zoom_base: float = 1.25,
    ):
        self.transform = transform or ViewTransform()
        self.inset = inset
        self.wheel_zoom_base = wheel_zoom_base

        self.graph = Graph()
        self.hovered: Optional[Node] = None

        # ids of visible nodes; visible edges are derived from them
        self._visible: set[str] = set()
        self._focused: set = set()
        self._drag_position: Optional[Point] = None

    # ── Graph lifecycle ────────────────────────────────────────

    def reset(self, graph: Graph) -> None:
        """Show a new graph: everything visible, camera and hover reset."""
        self.graph = graph
        self._visible = {node.id for node in graph}
        self.hovered = None
        self._drag_position = None
        self.transform.reset()

    def fit_to_view(self) -> None:
        """Stretch the best-ratio layout over the whole viewport."""
        fitted = fit_to_viewport(
            {node.id: node.raw_layout_point for node in self.graph},
            self.inset,
        )
        for node in self.graph:
            node.point = fitted[node.id]
        self.transform.reset()

    def fit_to_best_ratio(self) -> None:
        """Restore the grid-normalized layout, equal spacing on both axes."""
        for node in self.graph:
            node.point = node.raw_layout_point
        self.transform.reset()

    # ── Camera ─────────────────────────────────────────────────

    def zoom_at(self, anchor: Point, factor_x: float, factor_y: float) -> None:
        self.transform.zoom_at(anchor, factor_x, factor_y)

    def zoom_by_wheel(self, anchor: Point, rotation: float) -> None:
        """Zoom around the pointer; positive rotation zooms out."""
        factor = self.wheel_zoom_base ** -rotation
        self.transform.zoom_at(anchor, factor, factor)

    def begin_drag(self, position: Point) -> None:
        self._drag_position = Point(*position)

    def drag_to(self, position: Point) -> None:
        """Pan by the pointer movement since the previous drag event."""
        position = Point(*position)
        if self._drag_position is None:
            self._drag_position = position
            return
        self.transform.pan_by(position - self._drag_position)
        self._drag_position = position

    def end_drag(self) -> None:
        self._drag_position = None

    def to_device(self, point: Point, viewport_size: Sequence[float]) -> Point:
        return self.transform.to_device(point, viewport_size)

    def node_at(
        self,
        device_point: Point,
        viewport_size: Sequence[float],
        radius: float = 5.0,
    ) -> Optional[Node]:
        """The visible node drawn nearest to `device_point`, within `radius` pixels."""
        best: Optional[Node] = None
        best_distance = radius
        for node in self.visible_nodes:
            center = self.to_device(node.point, viewport_size)
            distance = math.hypot(center.x - device_point[0], center.y - device_point[1])
            if distance <= best_distance:
                best, best_distance = node, distance
        return best

    # ── Visibility ─────────────────────────────────────────────

    @property
    def visible_nodes(self) -> list[Node]:
        return [node for node in self.graph if node.id in self._visible]

    @property
    def visible_edges(self) -> list[Edge]:
        return [
            edge for edge in self.graph.edges
            if edge.source.id in self._visible and edge.target.id in self._visible
        ]

    def is_visible(self, node: Node) -> bool:
        return node.id in self._visible

    def set_visibility(self, predicate: NodePredicate) -> None:
        """Show exactly the nodes matching `predicate`."""
        self._visible = {node.id for node in self.graph if predicate(node)}
        if self.hovered is not None and self.hovered.id not in self._visible:
            self.hovered = None
        logger.debug("%d of %d nodes visible", len(self._visible), len(self.graph))

    def set_access_filter(self, levels: Iterable[str]) -> None:
        """Show only functions whose access level is in `levels`."""
        allowed = set(levels)
        self.set_visibility(lambda node: getattr(node.function, "access", None) in allowed)

    # ── Highlighting ───────────────────────────────────────────

    def toggle_focus(self, node: Node) -> bool:
        """Add or remove a node's function from the focus set; True if now focused."""
        if node.function in self._focused:
            self._focused.discard(node.function)
            return False
        self._focused.add(node.function)
        return True

    def clear_focus(self) -> None:
        self._focused.clear()

    @property
    def focused_functions(self) -> frozenset:
        return frozenset(self._focused)

    def set_hovered(self, node: Optional[Node]) -> bool:
        """Returns True when the hovered node changed."""
        if self.hovered is node:
            return False
        self.hovered = node
        return True

    def is_highlighted(self, node: Node) -> bool:
        return node is self.hovered or node.function in self._focused

    def classify_edge(self, edge: Edge) -> EdgeDirection:
        """
        Classify an edge relative to the highlighted nodes.

        An edge leaving a highlighted node is DOWNSTREAM, one entering a
        highlighted node is UPSTREAM. DOWNSTREAM wins when both ends are
        highlighted. Self loops are never upstream or downstream.
        """
        if edge.is_self_loop:
            return EdgeDirection.SELF_LOOP
        if self.is_highlighted(edge.source):
            return EdgeDirection.DOWNSTREAM
        if self.is_highlighted(edge.target):
            return EdgeDirection.UPSTREAM
        return EdgeDirection.NONE
