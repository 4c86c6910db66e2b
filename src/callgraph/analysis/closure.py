"""Closure Resolver - transitive caller/callee discovery.

Starting from a seed set, the resolver repeatedly asks the reference
oracle for the direct callers (UPSTREAM) or callees (DOWNSTREAM) of every
function in the current frontier, until no unseen function turns up.
A function is never queried twice for the same direction within one
resolve() call, so cyclic and recursive call chains terminate.

Every discovered edge is oriented caller -> callee, whichever direction
found it.

Usage:
    resolver = ClosureResolver(index, cache=cache, max_workers=4)
    edges = resolver.resolve({seed}, Direction.BOTH)   # {(caller, callee), ...}
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Hashable, Iterable, Optional, Protocol

from callgraph.analysis.dependency_cache import DependencyCache
from callgraph.analysis.direction import Direction
from callgraph.errors import BuildCancelled, CallGraphError, ReferenceSearchError

logger = logging.getLogger(__name__)

EdgeSet = set[tuple[Any, Any]]


class ReferenceOracle(Protocol):
    """Caller/callee search (implemented by the source index)."""

    def find_callers(self, function: Any) -> Iterable[Any]:
        ...

    def find_callees(self, function: Any) -> Iterable[Any]:
        ...


class CancellationToken:
    """Cooperative cancellation flag shared between a build and its owner."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self) -> None:
        """Raise BuildCancelled if cancel() was called."""
        if self._event.is_set():
            raise BuildCancelled("Build was cancelled")


class ClosureResolver:
    """Breadth-first transitive closure over a reference oracle."""

    def __init__(
        self,
        oracle: ReferenceOracle,
        cache: Optional[DependencyCache] = None,
        max_workers: int = 1,
        token: Optional[CancellationToken] = None,
        on_progress: Optional[Callable[[int], None]] = None,
    ):
        """
        Args:
            oracle: Answers find_callers / find_callees
            cache: Session cache consulted before, and updated after, each query
            max_workers: Parallel oracle queries within one BFS round
            token: Checked between rounds and before every oracle call
            on_progress: Called with the number of functions processed so far
        """
        self.oracle = oracle
        self.cache = cache
        self.max_workers = max(1, max_workers)
        self.token = token or CancellationToken()
        self.on_progress = on_progress
        self.processed = 0
        self._progress_lock = threading.Lock()

    def resolve(self, seeds: Iterable[Hashable], direction: Direction) -> EdgeSet:
        """
        Collect every edge reachable from `seeds` in `direction`.

        For BOTH, the upstream and downstream closures run independently
        and their (caller, callee) edges are unioned.
        """
        seeds = set(seeds)
        edges: EdgeSet = set()
        for single in direction.single_directions():
            edges |= self._close(seeds, single)
        logger.debug("Resolved %d edges from %d seeds (%s)", len(edges), len(seeds), direction.value)
        return edges

    def expand(self, functions: Iterable[Hashable], direction: Direction) -> EdgeSet:
        """Collect only the direct edges of `functions` (a single round)."""
        functions = set(functions)
        edges: EdgeSet = set()
        for single in direction.single_directions():
            self.token.check()
            for function, neighbors in self._query_round(functions, single).items():
                edges.update(_orient(function, neighbor, single) for neighbor in neighbors)
        return edges

    def _close(self, seeds: set, direction: Direction) -> EdgeSet:
        frontier = set(seeds)
        seen: set = set()
        edges: EdgeSet = set()
        round_number = 0

        while frontier:
            self.token.check()
            round_number += 1
            logger.debug("%s round %d: %d functions", direction.value, round_number, len(frontier))

            neighbors_by_function = self._query_round(frontier, direction)
            seen |= frontier

            next_frontier = set()
            for function, neighbors in neighbors_by_function.items():
                for neighbor in neighbors:
                    edges.add(_orient(function, neighbor, direction))
                    if neighbor not in seen:
                        next_frontier.add(neighbor)
            frontier = next_frontier

        return edges

    def _query_round(self, frontier: set, direction: Direction) -> dict[Any, frozenset]:
        """Neighbours of every frontier function; the round's synchronization point."""
        results: dict[Any, frozenset] = {}
        pending = []
        for function in frontier:
            expansion = self.cache.expansion(function, direction) if self.cache is not None else None
            if expansion is not None:
                results[function] = expansion.neighbors
                self._advance()
            else:
                pending.append(function)

        if self.cache is not None and results:
            logger.debug("Reused %d cached %s expansions", len(results), direction.value)

        if len(pending) > 1 and self.max_workers > 1:
            workers = min(self.max_workers, len(pending))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                fetched = list(pool.map(lambda f: self._query(f, direction), pending))
        else:
            fetched = [self._query(function, direction) for function in pending]

        # cache writes only once the whole round succeeded
        for function, neighbors in zip(pending, fetched):
            results[function] = neighbors
            if self.cache is not None:
                self.cache.record_expansion(function, direction, neighbors)

        return results

    def _query(self, function: Hashable, direction: Direction) -> frozenset:
        self.token.check()
        try:
            if direction is Direction.UPSTREAM:
                neighbors = frozenset(self.oracle.find_callers(function))
            else:
                neighbors = frozenset(self.oracle.find_callees(function))
        except CallGraphError:
            raise
        except Exception as e:
            raise ReferenceSearchError(f"Reference search failed for {function}: {e}") from e
        self._advance()
        return neighbors

    def _advance(self) -> None:
        with self._progress_lock:
            self.processed += 1
            processed = self.processed
        if self.on_progress is not None:
            self.on_progress(processed)


def _orient(function: Any, neighbor: Any, direction: Direction) -> tuple[Any, Any]:
    """Turn a (queried function, neighbour) pair into a caller -> callee edge."""
    if direction is Direction.UPSTREAM:
        return (neighbor, function)
    return (function, neighbor)
