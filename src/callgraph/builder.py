"""Graph Builder - scope -> closure -> Graph -> layout.

Two kinds of builds:

    Scope builds      every function of a project / module / directory plus
                      its direct callers and callees (one hop). The *_LIMITED
                      types keep only edges with both ends inside the scope.
    Focused builds    the transitive upstream and/or downstream closure of
                      the focused functions.

At most one build runs at a time. submit() cancels whatever is in flight
and queues the new build on a single background worker; the cancelled
build stops at its next checkpoint and reports CANCELLED.

Usage:
    builder = GraphBuilder(index, GraphvizLayoutOracle(), listener=listener)
    result = builder.build(BuildConfig(BuildType.DOWNSTREAM, focused_functions=(main,)))
    if result.ok:
        render(result.graph)
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Protocol

from callgraph.analysis.closure import CancellationToken, ClosureResolver
from callgraph.analysis.dependency_cache import DependencyCache
from callgraph.analysis.direction import Direction
from callgraph.analysis.graph import Graph
from callgraph.config import Settings
from callgraph.errors import (
    BuildCancelled,
    CallGraphError,
    GraphContractError,
    OracleError,
    ReferenceSearchError,
    ScopeResolutionError,
)
from callgraph.index.source_index import Scope
from callgraph.layout.normalizer import LayoutNormalizer
from callgraph.layout.oracle import LayoutOracle

logger = logging.getLogger(__name__)


class BuildType(Enum):
    WHOLE_PROJECT_WITH_TEST_LIMITED = "Whole project (test files included), limited upstream/downstream scope"
    WHOLE_PROJECT_WITHOUT_TEST_LIMITED = "Whole project (test files excluded), limited upstream/downstream scope"
    MODULE_LIMITED = "Module, limited upstream/downstream scope"
    DIRECTORY_LIMITED = "Directory, limited upstream/downstream scope"
    WHOLE_PROJECT_WITH_TEST = "Whole project (test files included)"
    WHOLE_PROJECT_WITHOUT_TEST = "Whole project (test files excluded)"
    MODULE = "Module"
    DIRECTORY = "Directory"
    UPSTREAM = "Upstream"
    DOWNSTREAM = "Downstream"
    UPSTREAM_DOWNSTREAM = "Upstream & downstream"

    @property
    def label(self) -> str:
        return self.value

    @property
    def is_limited(self) -> bool:
        return self.name.endswith("_LIMITED")

    @property
    def is_focused(self) -> bool:
        return self in _FOCUSED_DIRECTIONS

    @property
    def direction(self) -> Direction:
        """Which way the build follows calls."""
        if self.is_focused:
            return _FOCUSED_DIRECTIONS[self]
        return Direction.DOWNSTREAM if self.is_limited else Direction.BOTH


_FOCUSED_DIRECTIONS = {
    BuildType.UPSTREAM: Direction.UPSTREAM,
    BuildType.DOWNSTREAM: Direction.DOWNSTREAM,
    BuildType.UPSTREAM_DOWNSTREAM: Direction.BOTH,
}


@dataclass(frozen=True)
class BuildConfig:
    """What to build."""

    build_type: BuildType
    focused_functions: tuple = ()
    module_name: str = ""
    directory_path: str = ""

    def scope(self) -> Scope:
        """The function scope of a scope build."""
        build_type = self.build_type
        if build_type in (BuildType.WHOLE_PROJECT_WITH_TEST, BuildType.WHOLE_PROJECT_WITH_TEST_LIMITED):
            return Scope.project(include_tests=True)
        if build_type in (BuildType.WHOLE_PROJECT_WITHOUT_TEST, BuildType.WHOLE_PROJECT_WITHOUT_TEST_LIMITED):
            return Scope.project(include_tests=False)
        if build_type in (BuildType.MODULE, BuildType.MODULE_LIMITED):
            return Scope.module(self.module_name)
        if build_type in (BuildType.DIRECTORY, BuildType.DIRECTORY_LIMITED):
            return Scope.directory(self.directory_path)
        raise ValueError(f"{build_type.name} builds have no scope")


class BuildStatus(Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class BuildResult:
    status: BuildStatus
    graph: Optional[Graph] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status is BuildStatus.COMPLETED


class BuildListener:
    """Build lifecycle callbacks. Override what you need; the rest do nothing."""

    def on_started(self, config: BuildConfig) -> None:
        pass

    def on_progress(self, processed: int, total: Optional[int]) -> None:
        """`total` is None when the closure size is not known upfront."""

    def on_warning(self, message: str) -> None:
        pass

    def on_completed(self, graph: Graph) -> None:
        pass

    def on_cancelled(self) -> None:
        pass

    def on_failed(self, error: Exception) -> None:
        pass


class CodeIndex(Protocol):
    """Everything the builder needs from the source index."""

    def all_functions(self, scope: Optional[Scope] = None) -> set: ...

    def find_callers(self, function: Any) -> Iterable[Any]: ...

    def find_callees(self, function: Any) -> Iterable[Any]: ...

    def file_of(self, function: Any) -> str: ...

    def modification_version(self, file_path: str) -> int: ...

    def index_version(self) -> int: ...

    def definitions_version(self) -> int: ...


class GraphBuilder:
    """Orchestrates builds and owns the session's dependency cache."""

    def __init__(
        self,
        oracle: CodeIndex,
        layout_oracle: LayoutOracle,
        settings: Optional[Settings] = None,
        listener: Optional[BuildListener] = None,
    ):
        """
        Args:
            oracle: Source index answering scope and reference queries
            layout_oracle: Lays out connected components
            settings: Grid size, inset and worker count (default: Settings())
            listener: Receives lifecycle callbacks
        """
        self.oracle = oracle
        self.settings = settings or Settings()
        self.listener = listener or BuildListener()
        self.normalizer = LayoutNormalizer(
            layout_oracle,
            grid_size=self.settings.grid_size,
            inset=self.settings.viewport_inset,
        )
        self.cache = DependencyCache.new_session(oracle)
        self.last_graph: Optional[Graph] = None

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="callgraph-build")
        self._token: Optional[CancellationToken] = None
        self._token_lock = threading.Lock()

    # ── Session ────────────────────────────────────────────────

    def new_session(self) -> None:
        """Forget every cached dependency."""
        self.cache = DependencyCache.new_session(self.oracle)
        logger.debug("Started a new dependency cache session")

    def shutdown(self) -> None:
        self.cancel()
        self._executor.shutdown(wait=True)

    # ── Running builds ─────────────────────────────────────────

    def submit(self, config: BuildConfig) -> "Future[BuildResult]":
        """Cancel the in-flight build and queue `config` on the background worker."""
        token = CancellationToken()
        with self._token_lock:
            if self._token is not None:
                self._token.cancel()
            self._token = token
        return self._executor.submit(self.build, config, token)

    def cancel(self) -> None:
        """Ask the in-flight build to stop at its next checkpoint."""
        with self._token_lock:
            if self._token is not None:
                self._token.cancel()

    def build(self, config: BuildConfig, token: Optional[CancellationToken] = None) -> BuildResult:
        """
        Run one build synchronously.

        Returns:
            COMPLETED with the laid-out graph, CANCELLED, or FAILED with the
            oracle error. last_graph only changes on COMPLETED.

        Raises:
            GraphContractError: After reporting it to the listener as a failure
            Exception: Anything unexpected, also reported as a failure first
        """
        token = token or CancellationToken()
        self.listener.on_started(config)
        logger.info("Build started: %s", config.build_type.label)

        try:
            graph = self._build_graph(config, token)
            token.check()
            self.normalizer.layout(graph)
            token.check()
        except BuildCancelled:
            logger.info("Build cancelled: %s", config.build_type.label)
            self.listener.on_cancelled()
            return BuildResult(BuildStatus.CANCELLED)
        except GraphContractError as e:
            logger.error("Build aborted by a graph contract violation: %s", e)
            self.listener.on_failed(e)
            raise
        except OracleError as e:
            logger.error("Build failed: %s", e)
            self.listener.on_failed(e)
            return BuildResult(BuildStatus.FAILED, error=e)
        except Exception as e:
            logger.exception("Build aborted by an unexpected error")
            self.listener.on_failed(e)
            raise

        self.last_graph = graph
        logger.info("Build completed: %d nodes, %d edges", len(graph), len(graph.edges))
        self.listener.on_completed(graph)
        return BuildResult(BuildStatus.COMPLETED, graph=graph)

    # ── Internals ──────────────────────────────────────────────

    def _build_graph(self, config: BuildConfig, token: CancellationToken) -> Graph:
        try:
            removed = self.cache.prune(self.oracle.all_functions(Scope.project()))
        except CallGraphError:
            raise
        except Exception as e:
            raise ReferenceSearchError(f"Could not list the indexed functions: {e}") from e
        if removed:
            logger.debug("Pruned %d stale dependencies", removed)

        build_type = config.build_type
        direction = build_type.direction

        if build_type.is_focused:
            seeds = set(config.focused_functions)
            resolver = self._resolver(token, total=None)
            edges = resolver.resolve(seeds, direction)
            return _assemble(seeds, edges)

        functions = self._functions_in_scope(config)
        total = len(functions) * len(direction.single_directions())
        resolver = self._resolver(token, total=total)
        edges = resolver.expand(functions, direction)

        if build_type.is_limited:
            edges = {(a, b) for a, b in edges if a in functions and b in functions}
        else:
            edges = {(a, b) for a, b in edges if a in functions or b in functions}
        return _assemble(functions, edges)

    def _functions_in_scope(self, config: BuildConfig) -> set:
        scope = config.scope()
        try:
            return set(self.oracle.all_functions(scope))
        except ScopeResolutionError as e:
            message = f"Could not resolve {scope.describe()}, building an empty graph: {e}"
            logger.warning(message)
            self.listener.on_warning(message)
            return set()
        except CallGraphError:
            raise
        except Exception as e:
            raise ReferenceSearchError(f"Could not list the functions of {scope.describe()}: {e}") from e

    def _resolver(self, token: CancellationToken, total: Optional[int]) -> ClosureResolver:
        return ClosureResolver(
            self.oracle,
            cache=self.cache,
            max_workers=self.settings.max_workers,
            token=token,
            on_progress=lambda processed: self.listener.on_progress(processed, total),
        )


def _display_key(function: Any) -> tuple[str, str]:
    return (str(function), repr(function))


def _assemble(functions: Iterable[Any], edges: set) -> Graph:
    """Graph of `functions` and every edge endpoint, in a deterministic order."""
    graph = Graph()
    members = set(functions)
    for caller, callee in edges:
        members.add(caller)
        members.add(callee)

    for function in sorted(members, key=_display_key):
        graph.add_node(function)
    for caller, callee in sorted(edges, key=lambda e: (_display_key(e[0]), _display_key(e[1]))):
        graph.add_edge(caller, callee)
    return graph
