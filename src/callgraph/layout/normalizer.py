"""Layout Normalizer — turn oracle drawings into viewport coordinates.

Pipeline for one graph:
    1. Split into connected components.
    2. Lay out each component (single nodes sit at (0.5, 0.5), the rest
       go to the layout oracle with nodes sorted by name).
    3. Grid-size normalization: rescale each axis so the average spacing
       between distinct coordinate values equals the target grid size.
    4. Stack components vertically, tallest first, left-aligned.
    5. Fit the union into [inset, 1 - inset] on both axes.

A blueprint is a mapping of node id -> Point. The stacked blueprint is
kept on every node as `raw_layout_point` (the "best ratio" layout); the
fitted one becomes the live `point`.
"""

import logging
from dataclasses import dataclass

import numpy as np

from callgraph.analysis.graph import Graph
from callgraph.errors import CallGraphError, LayoutOracleError
from callgraph.geometry import Point
from callgraph.layout.oracle import LayoutOracle

logger = logging.getLogger(__name__)

Blueprint = dict[str, Point]

# Distinct coordinates are counted on a grid of 1/1000 of each axis range
PRECISION = 1000

CENTER = 0.5


class LayoutNormalizer:
    """Compute deterministic, normalized node coordinates for a Graph."""

    def __init__(self, oracle: LayoutOracle, grid_size: float = 0.1, inset: float = 0.1):
        """
        Args:
            oracle: Lays out components with two or more nodes
            grid_size: Target spacing between adjacent rows/columns
            inset: Margin kept free on every side of the unit viewport
        """
        self.oracle = oracle
        self.grid_size = grid_size
        self.inset = inset

    def layout(self, graph: Graph) -> None:
        """
        Assign `raw_layout_point` and `point` to every node of `graph`.

        Raises:
            LayoutOracleError: If the oracle fails on any component
        """
        if len(graph) == 0:
            return

        blueprints = [
            normalize_grid_size(self._layout_component(component), self.grid_size)
            for component in graph.connected_components()
        ]
        merged = merge_blueprints(blueprints, self.grid_size)
        fitted = fit_to_viewport(merged, self.inset)

        for node in graph:
            node.raw_layout_point = merged[node.id]
            node.point = fitted[node.id]

        logger.debug("Laid out %d nodes in %d components", len(graph), len(blueprints))

    def _layout_component(self, component: Graph) -> Blueprint:
        nodes = sorted(component.nodes, key=lambda n: n.sort_key)

        # a one-node drawing is trivial, and oracles can be degenerate on it
        if len(nodes) == 1:
            return {nodes[0].id: Point(CENTER, CENTER)}

        edges = [
            (node.id, target.id)
            for node in nodes
            for target in sorted((e.target for e in node.out_edges.values()), key=lambda n: n.sort_key)
        ]
        node_ids = [node.id for node in nodes]

        try:
            result = self.oracle.layout(node_ids, edges)
        except CallGraphError:
            raise
        except Exception as e:
            raise LayoutOracleError(f"Layout oracle failed: {e}") from e

        try:
            return {node_id: Point(*result.positions[node_id]) for node_id in node_ids}
        except (KeyError, TypeError) as e:
            raise LayoutOracleError(f"Layout oracle returned no usable position for {e}") from e


def grid_spacing(blueprint: Blueprint) -> Point:
    """
    Average distance between adjacent distinct values, per axis.

    (max - min) / (count - 1) over the distinct values; 0 on an axis with
    fewer than two distinct values. Values are told apart on a grid of
    1/PRECISION of the axis range, so rescaling an axis never changes how
    many distinct values it has.
    """
    if not blueprint:
        return Point(0.0, 0.0)
    coords = np.array([tuple(p) for p in blueprint.values()], dtype=float)
    return Point(_average_difference(coords[:, 0]), _average_difference(coords[:, 1]))


def _average_difference(values: np.ndarray) -> float:
    low, high = values.min(), values.max()
    extent = float(high - low)
    # spreads below 1/PRECISION of a unit are layout noise, not a second column
    if extent < 1.0 / PRECISION:
        return 0.0
    cells = np.unique(np.rint((values - low) / extent * PRECISION))
    return extent / (cells.size - 1)


def normalize_grid_size(blueprint: Blueprint, grid_size: float) -> Blueprint:
    """Rescale each axis so its grid spacing becomes `grid_size`."""
    if len(blueprint) < 2:
        return dict(blueprint)

    spacing = grid_spacing(blueprint)
    x_factor = 1.0 if spacing.x == 0 else grid_size / spacing.x
    y_factor = 1.0 if spacing.y == 0 else grid_size / spacing.y
    return {
        node_id: Point(point.x * x_factor, point.y * y_factor)
        for node_id, point in blueprint.items()
    }


@dataclass
class _Measured:
    blueprint: Blueprint
    min_x: float
    min_y: float
    width: float
    height: float


def _measure(blueprint: Blueprint, grid_size: float) -> _Measured:
    xs = [p.x for p in blueprint.values()]
    ys = [p.y for p in blueprint.values()]
    return _Measured(
        blueprint=blueprint,
        min_x=min(xs),
        min_y=min(ys),
        width=max(xs) - min(xs) + grid_size,
        height=max(ys) - min(ys) + grid_size,
    )


def merge_blueprints(blueprints: list[Blueprint], grid_size: float) -> Blueprint:
    """
    Stack normalized component blueprints into one.

    Components are ordered by descending height, then width (ties keep
    their given order). Each one is left-aligned on x = 0.5 and placed in
    a slot of its own height plus `grid_size` padding below the previous
    ones. The leftmost point of the first component lies on y = 0.5.
    """
    measured = [_measure(bp, grid_size) for bp in blueprints if bp]
    if not measured:
        return {}

    ordered = sorted(measured, key=lambda m: (-m.height, -m.width))

    first = ordered[0]
    leftmost = min(first.blueprint.values(), key=lambda p: p.x)
    top = CENTER - (leftmost.y - first.min_y)

    merged: Blueprint = {}
    y_offset = 0.0
    for component in ordered:
        for node_id, point in component.blueprint.items():
            merged[node_id] = Point(
                point.x - component.min_x + CENTER,
                point.y - component.min_y + y_offset + top,
            )
        y_offset += component.height
    return merged


def fit_to_viewport(blueprint: Blueprint, inset: float = 0.1) -> Blueprint:
    """
    Map a blueprint affinely into [inset, 1 - inset] on both axes.

    An axis with zero extent is centered on 0.5.
    """
    if not blueprint:
        return {}

    xs = [p.x for p in blueprint.values()]
    ys = [p.y for p in blueprint.values()]
    min_x, max_x = min(xs), max(xs)
    min_y, max_y = min(ys), max(ys)
    size = 1 - 2 * inset

    def scale(value: float, low: float, high: float) -> float:
        if high == low:
            return CENTER
        fitted = (value - low) / (high - low) * size + inset
        return min(max(fitted, inset), 1 - inset)

    return {
        node_id: Point(scale(p.x, min_x, max_x), scale(p.y, min_y, max_y))
        for node_id, p in blueprint.items()
    }
