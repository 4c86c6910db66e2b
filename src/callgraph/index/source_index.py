"""Source Index - the reference oracle behind graph builds.

Parses a source tree with the tree-sitter parsers and answers the three
questions a build asks:

    all_functions(scope)        every function in a project / module / directory
    find_callers(function)      who calls it
    find_callees(function)      what it calls

Call resolution is by name: a call to `save` resolves to every indexed
function named `save`, whatever its class or file.

Freshness: each file carries a version number that changes whenever the
file is re-parsed after an edit, and the index as a whole carries
`index_version()`, bumped by every refresh that changed anything. Version
numbers come from one counter, so they are never reused, not even by a
file that is deleted and later re-created. `definitions_version()` moves
only when a (name, file) definition appears or disappears, which is when
an unchanged call can resolve to a different set of targets.

Usage:
    index = SourceIndex("path/to/repo")
    stats = index.refresh()
    functions = index.all_functions(Scope.module("billing"))
    index.find_callees(functions.pop())
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Union

from callgraph.errors import ScopeResolutionError
from callgraph.parser.base import CodeParser, Function, FunctionMetadata
from callgraph.parser.java_parser import JavaParser
from callgraph.parser.python_parser import PythonParser

logger = logging.getLogger(__name__)

SKIP_DIRS = {"__pycache__", "node_modules", "vendor", "venv", "env", "virtualenv", "site-packages"}

TEST_DIRS = {"test", "tests", "testing"}


class ScopeKind(Enum):
    PROJECT = "project"
    MODULE = "module"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class Scope:
    """Which part of the source tree a build covers."""

    kind: ScopeKind
    include_tests: bool = True
    module_name: str = ""
    directory_path: str = ""

    @classmethod
    def project(cls, include_tests: bool = True) -> "Scope":
        return cls(ScopeKind.PROJECT, include_tests=include_tests)

    @classmethod
    def module(cls, name: str) -> "Scope":
        return cls(ScopeKind.MODULE, module_name=name)

    @classmethod
    def directory(cls, path: Union[str, Path]) -> "Scope":
        return cls(ScopeKind.DIRECTORY, directory_path=str(path))

    def describe(self) -> str:
        if self.kind is ScopeKind.MODULE:
            return f"module '{self.module_name}'"
        if self.kind is ScopeKind.DIRECTORY:
            return f"directory '{self.directory_path}'"
        return "whole project" + ("" if self.include_tests else " (tests excluded)")


@dataclass
class _IndexedFile:
    path: str
    mtime_ns: int
    size: int
    version: int
    functions: list[FunctionMetadata] = field(default_factory=list)


class SourceIndex:
    """In-memory function index of one source tree."""

    def __init__(self, root: Union[str, Path], parsers: Optional[list[CodeParser]] = None):
        """
        Args:
            root: Root directory of the source tree
            parsers: Parsers to use (default: Java and Python)
        """
        self.root = Path(root).resolve()
        self.parsers: list[CodeParser] = parsers if parsers is not None else [
            JavaParser(),
            PythonParser(),
        ]

        self._lock = threading.RLock()

        # absolute path -> _IndexedFile
        self._files: dict[str, _IndexedFile] = {}

        # function -> metadata
        self._functions: dict[Function, FunctionMetadata] = {}

        # simple name -> functions with that name
        self._by_name: dict[str, list[Function]] = defaultdict(list)

        # resolved call edges, both ways
        self._callees: dict[Function, set[Function]] = {}
        self._callers: dict[Function, set[Function]] = defaultdict(set)

        self._version_counter = 0
        self._index_version = 0

        # (name, file) pairs behind _by_name, and a counter bumped when they change
        self._definitions: frozenset[tuple[str, str]] = frozenset()
        self._definitions_version = 0

    def _get_parser_for_file(self, file_path: Path) -> Optional[CodeParser]:
        """Get the appropriate parser for a file."""
        for parser in self.parsers:
            if parser.can_parse(file_path):
                return parser
        return None

    # ── Indexing ───────────────────────────────────────────────

    def refresh(self) -> dict:
        """
        Bring the index up to date with the files on disk.

        New and changed files (by mtime or size) are parsed again, removed
        files are dropped, and every changed file gets a new version.

        Returns:
            Statistics about the refresh

        Raises:
            ScopeResolutionError: If the root directory does not exist
        """
        if not self.root.is_dir():
            raise ScopeResolutionError(f"Source root does not exist: {self.root}")

        stats = {
            "files_scanned": 0,
            "files_parsed": 0,
            "files_removed": 0,
            "functions_indexed": 0,
            "errors": [],
        }

        with self._lock:
            seen: set[str] = set()
            changed = False

            for file_path in sorted(self.root.rglob("*")):
                if not file_path.is_file() or self._is_skipped(file_path):
                    continue
                parser = self._get_parser_for_file(file_path)
                if parser is None:
                    continue

                path_str = str(file_path)
                seen.add(path_str)
                stats["files_scanned"] += 1

                try:
                    stat = file_path.stat()
                except OSError as e:
                    stats["errors"].append(f"{file_path}: {e}")
                    continue

                indexed = self._files.get(path_str)
                if indexed is not None and (indexed.mtime_ns, indexed.size) == (stat.st_mtime_ns, stat.st_size):
                    continue

                try:
                    functions = parser.parse_file(file_path)
                except Exception as e:
                    logger.warning("Failed to parse %s: %s", file_path, e)
                    stats["errors"].append(f"{file_path}: {e}")
                    continue

                self._version_counter += 1
                self._files[path_str] = _IndexedFile(
                    path=path_str,
                    mtime_ns=stat.st_mtime_ns,
                    size=stat.st_size,
                    version=self._version_counter,
                    functions=functions,
                )
                stats["files_parsed"] += 1
                changed = True

            for path_str in set(self._files) - seen:
                del self._files[path_str]
                stats["files_removed"] += 1
                changed = True

            if changed:
                self._index_version += 1
                self._rebuild_links()

            stats["functions_indexed"] = len(self._functions)

        logger.info(
            "Indexed %s: %d files scanned, %d parsed, %d removed, %d functions",
            self.root, stats["files_scanned"], stats["files_parsed"],
            stats["files_removed"], stats["functions_indexed"],
        )
        return stats

    def _is_skipped(self, file_path: Path) -> bool:
        """Hidden directories, caches, dependencies and virtualenvs are never indexed."""
        for part in file_path.relative_to(self.root).parts[:-1]:
            if part.startswith(".") or part in SKIP_DIRS:
                return True
        return False

    def _rebuild_links(self) -> None:
        self._functions = {
            metadata.function: metadata
            for indexed in self._files.values()
            for metadata in indexed.functions
        }

        self._by_name = defaultdict(list)
        for function in sorted(self._functions, key=_function_order):
            self._by_name[function.name].append(function)

        definitions = frozenset((f.name, f.file_path) for f in self._functions)
        if definitions != self._definitions:
            self._definitions = definitions
            self._definitions_version += 1

        self._callees = {}
        self._callers = defaultdict(set)
        for function, metadata in self._functions.items():
            callees = {
                target
                for call in metadata.calls
                for target in self._by_name.get(call, ())
            }
            self._callees[function] = callees
            for callee in callees:
                self._callers[callee].add(function)

    # ── Reference oracle ───────────────────────────────────────

    def all_functions(self, scope: Optional[Scope] = None) -> set[Function]:
        """
        Every indexed function inside `scope` (default: whole project).

        Raises:
            ScopeResolutionError: If the module or directory does not exist
        """
        scope = scope or Scope.project()
        with self._lock:
            functions = list(self._functions)

        if scope.kind is ScopeKind.PROJECT:
            if scope.include_tests:
                return set(functions)
            return {f for f in functions if not self.is_test_file(f.file_path)}

        if scope.kind is ScopeKind.MODULE:
            module_dir = self.root / scope.module_name
            if not scope.module_name or not module_dir.is_dir():
                raise ScopeResolutionError(f"Module does not exist: {scope.module_name!r}")
            return {f for f in functions if _is_under(f.file_path, module_dir)}

        directory = Path(scope.directory_path)
        if not directory.is_absolute():
            directory = self.root / directory
        directory = directory.resolve()
        if not directory.is_dir():
            raise ScopeResolutionError(f"Directory does not exist: {scope.directory_path!r}")
        return {f for f in functions if _is_under(f.file_path, directory)}

    def find_callers(self, function: Function, search_scope: Optional[Scope] = None) -> set[Function]:
        """Functions that call `function`, optionally limited to `search_scope`."""
        with self._lock:
            callers = set(self._callers.get(function, ()))
        if search_scope is not None:
            callers &= self.all_functions(search_scope)
        return callers

    def find_callees(self, function: Function) -> set[Function]:
        """Functions that `function` calls."""
        with self._lock:
            return set(self._callees.get(function, ()))

    # ── Freshness ──────────────────────────────────────────────

    def file_of(self, function: Function) -> str:
        """
        Source file of `function`.

        Raises:
            KeyError: If the function is no longer indexed
        """
        with self._lock:
            if function not in self._functions:
                raise KeyError(function)
        return function.file_path

    def modification_version(self, file_path: str) -> int:
        """
        Version of an indexed file; changes on every re-parse.

        Raises:
            KeyError: If the file is not indexed
        """
        with self._lock:
            return self._files[file_path].version

    def index_version(self) -> int:
        return self._index_version

    def definitions_version(self) -> int:
        """Version of the set of defined names; unchanged by edits that only move code."""
        return self._definitions_version

    # ── Lookup ─────────────────────────────────────────────────

    def find_functions(self, name: str) -> list[Function]:
        """Functions whose simple or qualified name is `name`, in file/line order."""
        with self._lock:
            matches = [
                f for f in self._functions
                if name in (f.name, f.qualified_name)
            ]
        return sorted(matches, key=_function_order)

    def metadata(self, function: Function) -> FunctionMetadata:
        with self._lock:
            return self._functions[function]

    def modules(self) -> list[str]:
        """Top-level directories under the root that hold indexed files."""
        with self._lock:
            paths = list(self._files)
        names = set()
        for path_str in paths:
            parts = Path(path_str).relative_to(self.root).parts
            if len(parts) > 1:
                names.add(parts[0])
        return sorted(names)

    def is_test_file(self, file_path: Union[str, Path]) -> bool:
        """Test sources: files under a test directory or named like a test."""
        path = Path(file_path)
        try:
            parts = path.relative_to(self.root).parts
        except ValueError:
            parts = path.parts
        if any(part.lower() in TEST_DIRS for part in parts[:-1]):
            return True
        name = path.name
        return (
            name.startswith("test_")
            or name == "conftest.py"
            or path.stem.endswith("_test")
            or path.stem.endswith(("Test", "Tests"))
        )

    def relative_path(self, file_path: str) -> str:
        try:
            return str(Path(file_path).relative_to(self.root))
        except ValueError:
            return file_path

    def __len__(self) -> int:
        return len(self._functions)

    def __contains__(self, function: Function) -> bool:
        return function in self._functions


def _function_order(function: Function) -> tuple[str, int, str]:
    return (function.file_path, function.start_line, function.name)


def _is_under(file_path: str, directory: Path) -> bool:
    return Path(file_path).is_relative_to(directory)


def functions_named(index: SourceIndex, names: Iterable[str]) -> tuple[list[Function], list[str]]:
    """
    Resolve names to indexed functions.

    Returns:
        (matched functions, names that matched nothing)
    """
    found: list[Function] = []
    missing: list[str] = []
    for name in names:
        matches = index.find_functions(name)
        if matches:
            found.extend(matches)
        else:
            missing.append(name)
    return found, missing
