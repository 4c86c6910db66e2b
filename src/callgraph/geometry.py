"""2-D points shared by the layout and view layers."""

from typing import NamedTuple


class Point(NamedTuple):
    """An (x, y) coordinate; normalized graph space or device pixels."""

    x: float
    y: float

    def __add__(self, other: "Point") -> "Point":
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Point") -> "Point":
        return Point(self.x - other.x, self.y - other.y)


ORIGIN = Point(0.0, 0.0)
