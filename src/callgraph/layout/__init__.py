"""Layout — feed components to a layout oracle and normalize the result.

Usage:
    from callgraph.layout import GraphvizLayoutOracle, LayoutNormalizer

    normalizer = LayoutNormalizer(GraphvizLayoutOracle("dot"), grid_size=0.1, inset=0.1)
    normalizer.layout(graph)        # sets node.point and node.raw_layout_point
"""

from callgraph.layout.normalizer import (
    LayoutNormalizer,
    fit_to_viewport,
    grid_spacing,
    merge_blueprints,
    normalize_grid_size,
)
from callgraph.layout.oracle import (
    GraphvizLayoutOracle,
    LayoutOracle,
    OracleLayout,
    parse_plain_layout,
)

__all__ = [
    "LayoutNormalizer",
    "fit_to_viewport",
    "grid_spacing",
    "merge_blueprints",
    "normalize_grid_size",
    "GraphvizLayoutOracle",
    "LayoutOracle",
    "OracleLayout",
    "parse_plain_layout",
]
