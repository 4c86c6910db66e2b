"""Dependency Cache - memoized caller -> callee edges across builds.

Every cached Dependency remembers the freshness token (per-file version
counter) of the caller's file and of the callee's file at the time it was
discovered. An entry is trusted only while both tokens still match the
live values; stale entries are evicted lazily on lookup or eagerly by
prune().

On top of single edges the cache keeps per-function expansions: the full
neighbour set a reference search returned for one function in one
direction. A downstream expansion stays valid while the function's own
file, every recorded edge and the set of defined names are unchanged (a
new definition elsewhere can give an old call a new target). An upstream
expansion depends on every file that could hold a caller, so it is keyed
on the index-wide version instead.

Usage:
    cache = DependencyCache.new_session(index)
    cache.record(caller, callee)
    cache.lookup(caller, callee)            # Dependency, or None once stale
    cache.prune(index.all_functions(Scope.project()))
"""

import logging
from dataclasses import dataclass
from typing import Any, Hashable, Iterable, Optional, Protocol

from callgraph.analysis.direction import Direction

logger = logging.getLogger(__name__)


class FreshnessSource(Protocol):
    """Where freshness tokens come from (implemented by the source index)."""

    def file_of(self, function: Any) -> str:
        """Source file that owns `function` (KeyError if it vanished)."""
        ...

    def modification_version(self, file_path: str) -> int:
        """Monotonic per-file version counter (KeyError if unknown)."""
        ...

    def index_version(self) -> int:
        """Monotonic counter bumped whenever any file changes."""
        ...

    def definitions_version(self) -> int:
        """Monotonic counter bumped whenever a function name appears in or leaves a file."""
        ...


@dataclass(frozen=True)
class Dependency:
    """A discovered caller -> callee relationship and its freshness tokens."""

    caller: Any
    callee: Any
    caller_version: int
    callee_version: int

    def is_fresh(self, freshness: FreshnessSource) -> bool:
        """True while both endpoint files are unchanged since discovery."""
        try:
            return (
                _version_of(freshness, self.caller) == self.caller_version
                and _version_of(freshness, self.callee) == self.callee_version
            )
        except KeyError:
            # caller or callee vanished from the index
            return False


@dataclass(frozen=True)
class Expansion:
    """The neighbour set of one function in one direction."""

    function: Any
    direction: Direction
    token: Hashable
    neighbors: frozenset


def _version_of(freshness: FreshnessSource, function: Any) -> int:
    return freshness.modification_version(freshness.file_of(function))


class DependencyCache:
    """
    Session-scoped memo of discovered dependencies.

    Read and written by one build at a time; the builder's
    cancel-before-start rule serializes access, so no locking happens here.
    """

    def __init__(self, freshness: FreshnessSource):
        self._freshness = freshness

        # (caller, callee) -> Dependency
        self._dependencies: dict[tuple[Hashable, Hashable], Dependency] = {}

        # (function, direction) -> Expansion
        self._expansions: dict[tuple[Hashable, Direction], Expansion] = {}

    @classmethod
    def new_session(cls, freshness: FreshnessSource) -> "DependencyCache":
        """Start an empty cache for a new tool session."""
        return cls(freshness)

    # ── Single dependencies ────────────────────────────────────

    def lookup(self, caller: Hashable, callee: Hashable) -> Optional[Dependency]:
        """Return the cached dependency, or None if absent or stale."""
        key = (caller, callee)
        dependency = self._dependencies.get(key)
        if dependency is None:
            return None
        if not dependency.is_fresh(self._freshness):
            logger.debug("Evicting stale dependency %s -> %s", caller, callee)
            del self._dependencies[key]
            return None
        return dependency

    def record(self, caller: Hashable, callee: Hashable) -> Dependency:
        """Store caller -> callee with the current freshness tokens."""
        dependency = Dependency(
            caller=caller,
            callee=callee,
            caller_version=_version_of(self._freshness, caller),
            callee_version=_version_of(self._freshness, callee),
        )
        self._dependencies[(caller, callee)] = dependency
        return dependency

    def dependencies(self) -> list[Dependency]:
        return list(self._dependencies.values())

    # ── Expansions ─────────────────────────────────────────────

    def expansion(self, function: Hashable, direction: Direction) -> Optional[Expansion]:
        """Return the recorded neighbour set of `function`, or None if stale."""
        key = (function, direction)
        expansion = self._expansions.get(key)
        if expansion is None:
            return None
        if not self._expansion_is_fresh(expansion):
            logger.debug("Evicting stale %s expansion of %s", direction.value, function)
            del self._expansions[key]
            return None
        return expansion

    def record_expansion(
        self,
        function: Hashable,
        direction: Direction,
        neighbors: Iterable[Hashable],
    ) -> Optional[Expansion]:
        """
        Remember the neighbours of `function` and record each edge.

        Edges are stored caller -> callee whatever the direction. Nothing is
        cached when a participant has no freshness token (not indexed).
        """
        if direction is Direction.BOTH:
            raise ValueError("Expansions are recorded per single direction")

        neighbors = frozenset(neighbors)
        try:
            token = self._expansion_token(function, direction)
            for neighbor in neighbors:
                if direction is Direction.UPSTREAM:
                    self.record(neighbor, function)
                else:
                    self.record(function, neighbor)
        except KeyError:
            logger.debug("Not caching %s expansion of unindexed %s", direction.value, function)
            return None

        expansion = Expansion(
            function=function,
            direction=direction,
            token=token,
            neighbors=neighbors,
        )
        self._expansions[(function, direction)] = expansion
        return expansion

    def _expansion_token(self, function: Hashable, direction: Direction) -> Hashable:
        if direction is Direction.UPSTREAM:
            return self._freshness.index_version()
        return (_version_of(self._freshness, function), self._freshness.definitions_version())

    def _expansion_is_fresh(self, expansion: Expansion) -> bool:
        try:
            token = self._expansion_token(expansion.function, expansion.direction)
        except KeyError:
            return False
        if token != expansion.token:
            return False
        if expansion.direction is Direction.UPSTREAM:
            return True
        return all(
            self.lookup(expansion.function, callee) is not None
            for callee in expansion.neighbors
        )

    # ── Maintenance ────────────────────────────────────────────

    def prune(self, valid_scope: Iterable[Hashable]) -> int:
        """
        Drop every entry that left `valid_scope` or went stale.

        Args:
            valid_scope: Functions that still exist

        Returns:
            Number of dependencies removed
        """
        valid = set(valid_scope)

        stale_dependencies = [
            key for key, dependency in self._dependencies.items()
            if dependency.caller not in valid
            or dependency.callee not in valid
            or not dependency.is_fresh(self._freshness)
        ]
        for key in stale_dependencies:
            del self._dependencies[key]

        stale_expansions = [
            key for key, expansion in self._expansions.items()
            if expansion.function not in valid
            or not expansion.neighbors <= valid
            or not self._expansion_is_fresh(expansion)
        ]
        for key in stale_expansions:
            del self._expansions[key]

        if stale_dependencies or stale_expansions:
            logger.debug(
                "Pruned %d dependencies and %d expansions",
                len(stale_dependencies), len(stale_expansions),
            )
        return len(stale_dependencies)

    def clear(self) -> None:
        self._dependencies.clear()
        self._expansions.clear()

    def __len__(self) -> int:
        return len(self._dependencies)

    def __contains__(self, pair: tuple[Hashable, Hashable]) -> bool:
        return self.lookup(*pair) is not None
