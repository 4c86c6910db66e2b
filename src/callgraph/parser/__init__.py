"""Parser Module — Reads source code and extracts functions and their calls.

Supported languages:
    - Java   (via tree-sitter)
    - Python (via tree-sitter)

Each parser extracts:
    - A hashable Function identity (name, file, line, class, access, parameters)
    - The called names, which feed the caller/callee index
    - Import statements

Usage:
    from callgraph.parser import JavaParser, PythonParser

    parser = JavaParser()
    functions = parser.parse_file(Path("MyClass.java"))
"""

from callgraph.parser.base import CodeParser, Function, FunctionMetadata, TreeSitterParser
from callgraph.parser.java_parser import JavaParser
from callgraph.parser.python_parser import PythonParser

__all__ = [
    "CodeParser",
    "Function",
    "FunctionMetadata",
    "JavaParser",
    "PythonParser",
    "TreeSitterParser",
]
