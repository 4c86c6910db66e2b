"""Traversal direction over the caller/callee relation."""

from enum import Enum


class Direction(Enum):
    """UPSTREAM follows callers, DOWNSTREAM follows callees."""

    UPSTREAM = "upstream"
    DOWNSTREAM = "downstream"
    BOTH = "both"

    @property
    def includes_upstream(self) -> bool:
        return self in (Direction.UPSTREAM, Direction.BOTH)

    @property
    def includes_downstream(self) -> bool:
        return self in (Direction.DOWNSTREAM, Direction.BOTH)

    def single_directions(self) -> list["Direction"]:
        """The one-way directions this direction is made of."""
        if self is Direction.BOTH:
            return [Direction.UPSTREAM, Direction.DOWNSTREAM]
        return [self]
