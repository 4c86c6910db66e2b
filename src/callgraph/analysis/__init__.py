"""Callgraph Analysis — Graph container, dependency cache and closure resolution."""

from callgraph.analysis.closure import CancellationToken, ClosureResolver, ReferenceOracle
from callgraph.analysis.dependency_cache import Dependency, DependencyCache, FreshnessSource
from callgraph.analysis.direction import Direction
from callgraph.analysis.graph import Edge, Graph, Node

__all__ = [
    "CancellationToken",
    "ClosureResolver",
    "ReferenceOracle",
    "Dependency",
    "DependencyCache",
    "FreshnessSource",
    "Direction",
    "Edge",
    "Graph",
    "Node",
]
