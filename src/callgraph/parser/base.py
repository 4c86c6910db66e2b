"""Base parser interface and data models."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

from tree_sitter import Language, Node, Parser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Function:
    """
    Identity of a function/method in the source index.

    Hashable and comparable; two parses of an unchanged file yield equal
    Functions. `access` and `parameters` are descriptive only and do not
    take part in equality.
    """

    name: str
    file_path: str
    start_line: int
    class_name: Optional[str] = None
    language: str = ""

    access: str = field(default="public", compare=False)
    parameters: tuple[str, ...] = field(default=(), compare=False)

    @property
    def qualified_name(self) -> str:
        """Return fully qualified name (ClassName.methodName or just functionName)."""
        if self.class_name:
            return f"{self.class_name}.{self.name}"
        return self.name

    @property
    def signature(self) -> str:
        """Name plus parameter names, e.g. ``save(owner, flush)``."""
        if not self.parameters:
            return self.name
        return f"{self.name}({', '.join(self.parameters)})"

    def __str__(self) -> str:
        return self.qualified_name


@dataclass
class FunctionMetadata:
    """Everything a parser extracted for one function/method."""

    function: Function
    end_line: int
    code: str

    # Dependencies
    calls: list[str] = field(default_factory=list)
    imports: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.function.name

    @property
    def qualified_name(self) -> str:
        return self.function.qualified_name

    @property
    def file_path(self) -> str:
        return self.function.file_path

    @property
    def line_count(self) -> int:
        return self.end_line - self.function.start_line + 1

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        fn = self.function
        return {
            "name": fn.name,
            "qualified_name": fn.qualified_name,
            "signature": fn.signature,
            "file_path": fn.file_path,
            "start_line": fn.start_line,
            "end_line": self.end_line,
            "language": fn.language,
            "access": fn.access,
            "class_name": fn.class_name or "",
            "calls": list(self.calls),
            "imports": list(self.imports),
        }


class CodeParser(ABC):
    """Abstract base class for language-specific parsers."""

    @property
    @abstractmethod
    def language(self) -> str:
        """Return the language this parser handles (e.g., 'java', 'python')."""
        pass

    @property
    @abstractmethod
    def file_extensions(self) -> list[str]:
        """Return file extensions this parser handles (e.g., ['.java'])."""
        pass

    @abstractmethod
    def parse_file(self, file_path: Path) -> list[FunctionMetadata]:
        """
        Parse a source file and extract all functions/methods.

        Args:
            file_path: Path to the source file

        Returns:
            List of FunctionMetadata for each function/method found
        """
        pass

    def can_parse(self, file_path: Path) -> bool:
        """Check if this parser can handle the given file."""
        return file_path.suffix.lower() in self.file_extensions


class TreeSitterParser(CodeParser):
    """
    Shared parse loop for tree-sitter grammars.

    Subclasses name the node types that open a class scope and that
    declare a function, then say how to read imports, call targets,
    access levels and parameters out of their grammar.
    """

    class_types: tuple[str, ...] = ()
    function_types: tuple[str, ...] = ()

    def __init__(self, language: Language):
        self._parser = Parser(language)

    def parse_file(self, file_path: Path) -> list[FunctionMetadata]:
        try:
            source = Path(file_path).read_bytes()
        except OSError as e:
            logger.warning("Error reading %s: %s", file_path, e)
            return []

        root = self._parser.parse(source).root_node
        imports = self.extract_imports(root)
        functions = []

        # preorder walk carrying the innermost enclosing class name
        stack: list[tuple[Node, Optional[str]]] = [(root, None)]
        while stack:
            node, class_name = stack.pop()
            if node.type in self.class_types:
                class_name = _text(node.child_by_field_name("name")) or class_name
            elif node.type in self.function_types:
                metadata = self._metadata(node, file_path, class_name, imports)
                if metadata is not None:
                    functions.append(metadata)
            stack.extend((child, class_name) for child in reversed(node.children))
        return functions

    def _metadata(
        self,
        node: Node,
        file_path: Path,
        class_name: Optional[str],
        imports: list[str],
    ) -> Optional[FunctionMetadata]:
        name = _text(node.child_by_field_name("name"))
        if not name:
            return None

        calls: list[str] = []
        for descendant in descendants(node):
            call = self.call_target(descendant)
            if call and call not in calls:
                calls.append(call)

        function = Function(
            name=name,
            file_path=str(file_path),
            start_line=node.start_point[0] + 1,
            class_name=class_name,
            language=self.language,
            access=self.access_level(node, name),
            parameters=self.parameters(node, is_method=class_name is not None),
        )
        return FunctionMetadata(
            function=function,
            end_line=node.end_point[0] + 1,
            code=_text(node),
            calls=calls,
            imports=imports,
        )

    @abstractmethod
    def extract_imports(self, root: Node) -> list[str]:
        """Import statements of the file."""

    @abstractmethod
    def call_target(self, node: Node) -> Optional[str]:
        """The called name if `node` is a call, else None."""

    @abstractmethod
    def access_level(self, node: Node, name: str) -> str:
        pass

    @abstractmethod
    def parameters(self, node: Node, is_method: bool) -> tuple[str, ...]:
        pass


def descendants(node: Node) -> Iterator[Node]:
    """`node` and everything below it, in source order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def _text(node: Optional[Node]) -> str:
    if node is None:
        return ""
    return node.text.decode("utf-8", errors="replace")
