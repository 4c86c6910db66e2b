"""Layout oracle — external, deterministic graph drawing.

The normalizer hands the oracle an ordered node list and an edge list and
gets back raw 2-D coordinates (arbitrary units) plus the drawing's extent.
The Graphviz implementation renders a left-to-right layered drawing and
reads it back through the `plain` text format:

    graph <scale> <width> <height>
    node <name> <x> <y> <width> <height> <label> <style> <shape> <color> <fillcolor>
    edge <tail> <head> <n> <x1> <y1> ... <xn> <yn> [<label> <xl> <yl>] <style> <color>
    stop

Graphviz docs: https://graphviz.org/docs/outputs/plain/
"""

import logging
import math
import shlex
from dataclasses import dataclass
from typing import Protocol, Sequence

import pydot

from callgraph.errors import LayoutOracleError
from callgraph.geometry import Point

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OracleLayout:
    """Raw coordinates of one drawing."""

    positions: dict[str, Point]
    extent: Point


class LayoutOracle(Protocol):
    def layout(self, nodes: Sequence[str], edges: Sequence[tuple[str, str]]) -> OracleLayout:
        """
        Lay out a directed graph.

        Args:
            nodes: Node ids; the order is the oracle's tie-breaker
            edges: (source id, target id) pairs, also in tie-break order

        Returns:
            A position for every node id plus the overall extent
        """
        ...


class GraphvizLayoutOracle:
    """Layered left-to-right layout computed by a Graphviz program."""

    def __init__(self, program: str = "dot"):
        self.program = program

    def layout(self, nodes: Sequence[str], edges: Sequence[tuple[str, str]]) -> OracleLayout:
        dot_graph = self.build_dot(nodes, edges)
        logger.debug("Running %s on %d nodes, %d edges", self.program, len(nodes), len(edges))
        try:
            raw = dot_graph.create(prog=self.program, format="plain")
        except (OSError, AssertionError) as e:
            raise LayoutOracleError(f"Graphviz program '{self.program}' failed: {e}") from e

        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw)
        result = parse_plain_layout(text)

        missing = [node_id for node_id in nodes if node_id not in result.positions]
        if missing:
            raise LayoutOracleError(f"Layout is missing {len(missing)} node(s), e.g. {missing[0]}")
        return result

    @staticmethod
    def build_dot(nodes: Sequence[str], edges: Sequence[tuple[str, str]]) -> pydot.Dot:
        """The directed, left-to-right Graphviz graph fed to the layout program."""
        dot_graph = pydot.Dot("callgraph", graph_type="digraph", rankdir="LR")
        for node_id in nodes:
            dot_graph.add_node(pydot.Node(node_id))
        for source_id, target_id in edges:
            dot_graph.add_edge(pydot.Edge(source_id, target_id))
        return dot_graph


def parse_plain_layout(text: str) -> OracleLayout:
    """
    Parse Graphviz `plain` output into node positions.

    Raises:
        LayoutOracleError: On any line that cannot be read
    """
    positions: dict[str, Point] = {}
    extent = None

    for line_number, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line:
            continue
        try:
            parts = shlex.split(line)
        except ValueError as e:
            raise LayoutOracleError(f"Unreadable layout line {line_number}: {line!r}") from e

        kind = parts[0]
        if kind == "graph":
            extent = Point(_coordinate(parts, 2, line_number), _coordinate(parts, 3, line_number))
        elif kind == "node":
            if len(parts) < 4:
                raise LayoutOracleError(f"Truncated node line {line_number}: {line!r}")
            positions[parts[1]] = Point(
                _coordinate(parts, 2, line_number),
                _coordinate(parts, 3, line_number),
            )
        elif kind == "stop":
            break

    if extent is None:
        if not positions:
            raise LayoutOracleError("Layout output holds neither a graph line nor nodes")
        extent = Point(
            max(p.x for p in positions.values()),
            max(p.y for p in positions.values()),
        )
    return OracleLayout(positions=positions, extent=extent)


def _coordinate(parts: list[str], index: int, line_number: int) -> float:
    try:
        value = float(parts[index])
    except (IndexError, ValueError) as e:
        raise LayoutOracleError(f"Bad coordinate on layout line {line_number}") from e
    if not math.isfinite(value):
        raise LayoutOracleError(f"Non-finite coordinate on layout line {line_number}")
    return value
