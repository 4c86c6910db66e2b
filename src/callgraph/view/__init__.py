"""View — camera transform and interactive canvas state."""

from callgraph.geometry import Point
from callgraph.view.canvas import Canvas, EdgeDirection
from callgraph.view.transform import ViewTransform

__all__ = ["Canvas", "EdgeDirection", "Point", "ViewTransform"]
