"""View Transform - camera mapping from normalized graph space to the device.

    device = (zoom_x * x * width - origin.x, zoom_y * y * height - origin.y)

Zooming keeps a device-space anchor fixed on screen:

    origin' = factor * origin + (factor - 1) * anchor        (per axis)

Usage:
    transform = ViewTransform()
    anchor = transform.to_device(node.point, (800, 600))
    transform.zoom_at(anchor, 1.25, 1.25)
    transform.to_device(node.point, (800, 600))   # == anchor
"""

from typing import Sequence

from callgraph.geometry import ORIGIN, Point


class ViewTransform:
    """Origin offset plus independent x/y zoom ratios."""

    DEFAULT_ZOOM = 1.0

    def __init__(self, origin: Point = ORIGIN, zoom_x: float = DEFAULT_ZOOM, zoom_y: float = DEFAULT_ZOOM):
        self.origin = Point(*origin)
        self.zoom_x = zoom_x
        self.zoom_y = zoom_y

    def to_device(self, point: Point, viewport_size: Sequence[float]) -> Point:
        """Map a normalized graph point to device coordinates."""
        width, height = viewport_size
        return Point(
            self.zoom_x * point[0] * width - self.origin.x,
            self.zoom_y * point[1] * height - self.origin.y,
        )

    def to_graph(self, device_point: Point, viewport_size: Sequence[float]) -> Point:
        """Inverse of to_device."""
        width, height = viewport_size
        return Point(
            (device_point[0] + self.origin.x) / (self.zoom_x * width),
            (device_point[1] + self.origin.y) / (self.zoom_y * height),
        )

    def zoom_at(self, anchor: Point, factor_x: float, factor_y: float) -> None:
        """
        Scale the view by (factor_x, factor_y) around a device-space anchor.

        Whatever graph point is drawn at `anchor` stays there.

        Raises:
            ValueError: If a factor is not positive
        """
        if factor_x <= 0 or factor_y <= 0:
            raise ValueError(f"Zoom factors must be positive, got ({factor_x}, {factor_y})")
        self.origin = Point(
            factor_x * self.origin.x + (factor_x - 1) * anchor[0],
            factor_y * self.origin.y + (factor_y - 1) * anchor[1],
        )
        self.zoom_x *= factor_x
        self.zoom_y *= factor_y

    def pan_by(self, delta: Point) -> None:
        """Drag the view; the origin moves opposite to the pointer."""
        self.origin = Point(self.origin.x - delta[0], self.origin.y - delta[1])

    def reset(self) -> None:
        self.origin = ORIGIN
        self.zoom_x = self.DEFAULT_ZOOM
        self.zoom_y = self.DEFAULT_ZOOM

    def __repr__(self) -> str:
        return f"ViewTransform(origin={tuple(self.origin)}, zoom_x={self.zoom_x}, zoom_y={self.zoom_y})"
