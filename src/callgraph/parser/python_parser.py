"""Python parser using tree-sitter."""

from typing import Optional

import tree_sitter_python as tspython
from tree_sitter import Language, Node

from .base import TreeSitterParser, descendants

_IMPLICIT_RECEIVERS = ("self", "cls")
_SPLATS = ("list_splat_pattern", "dictionary_splat_pattern")


class PythonParser(TreeSitterParser):
    """Parse Python source files using tree-sitter."""

    class_types = ("class_definition",)
    function_types = ("function_definition",)

    def __init__(self):
        super().__init__(Language(tspython.language()))

    @property
    def language(self) -> str:
        return "python"

    @property
    def file_extensions(self) -> list[str]:
        return [".py"]

    def extract_imports(self, root: Node) -> list[str]:
        return [
            node.text.decode("utf-8", errors="replace").strip()
            for node in descendants(root)
            if node.type in ("import_statement", "import_from_statement")
        ]

    def call_target(self, node: Node) -> Optional[str]:
        """`foo(...)` -> foo, `obj.method(...)` -> method, anything else verbatim."""
        if node.type != "call":
            return None
        callee = node.child_by_field_name("function")
        if callee is None:
            return None
        if callee.type == "attribute":
            callee = callee.child_by_field_name("attribute") or callee
        return callee.text.decode("utf-8", errors="replace")

    def access_level(self, node: Node, name: str) -> str:
        """Access level by naming convention (dunder methods are public)."""
        if name.startswith("__") and name.endswith("__"):
            return "public"
        if name.startswith("__"):
            return "private"
        if name.startswith("_"):
            return "protected"
        return "public"

    def parameters(self, node: Node, is_method: bool) -> tuple[str, ...]:
        """Parameter names in declaration order, without self/cls on methods."""
        params = node.child_by_field_name("parameters")
        if params is None:
            return ()

        names = [name for name in map(_parameter_name, params.named_children) if name]
        if is_method and names and names[0] in _IMPLICIT_RECEIVERS:
            del names[0]
        return tuple(names)


def _parameter_name(param: Node) -> str:
    if param.type == "identifier" or param.type in _SPLATS:
        target = param
    elif param.type in ("default_parameter", "typed_default_parameter"):
        target = param.child_by_field_name("name")
    elif param.type == "typed_parameter" and param.named_children:
        target = param.named_children[0]
    else:
        return ""
    return target.text.decode("utf-8") if target is not None else ""
