"""Java parser using tree-sitter."""

from typing import Optional

import tree_sitter_java as tsjava
from tree_sitter import Language, Node

from .base import TreeSitterParser

_ACCESS_MODIFIERS = ("public", "protected", "private")


class JavaParser(TreeSitterParser):
    """Parse Java source files using tree-sitter."""

    class_types = ("class_declaration", "interface_declaration", "enum_declaration", "record_declaration")
    function_types = ("method_declaration", "constructor_declaration")

    def __init__(self):
        super().__init__(Language(tsjava.language()))

    @property
    def language(self) -> str:
        return "java"

    @property
    def file_extensions(self) -> list[str]:
        return [".java"]

    def extract_imports(self, root: Node) -> list[str]:
        """Imported names: "import org.foo.Bar;" -> "org.foo.Bar"."""
        imports = []
        for child in root.children:
            if child.type == "import_declaration":
                text = child.text.decode("utf-8", errors="replace")
                imports.append(text.removeprefix("import").rstrip(";").strip())
        return imports

    def call_target(self, node: Node) -> Optional[str]:
        """Invoked method names, plus constructed types (without type arguments)."""
        if node.type == "method_invocation":
            name_node = node.child_by_field_name("name")
        elif node.type == "object_creation_expression":
            name_node = node.child_by_field_name("type")
        else:
            return None
        if name_node is None:
            return None
        return name_node.text.decode("utf-8").split("<", 1)[0]

    def access_level(self, node: Node, name: str) -> str:
        """public / protected / private, or package when no modifier is given."""
        for child in node.children:
            if child.type == "modifiers":
                for modifier in child.children:
                    text = modifier.text.decode("utf-8")
                    if text in _ACCESS_MODIFIERS:
                        return text
        return "package"

    def parameters(self, node: Node, is_method: bool) -> tuple[str, ...]:
        """Formal parameter names in declaration order."""
        params = node.child_by_field_name("parameters")
        if params is None:
            return ()

        names = []
        for param in params.named_children:
            if param.type == "formal_parameter":
                name_node = param.child_by_field_name("name")
            elif param.type == "spread_parameter":
                declarator = next(
                    (c for c in param.named_children if c.type == "variable_declarator"), None
                )
                name_node = declarator.child_by_field_name("name") if declarator else None
            else:
                continue
            if name_node is not None:
                names.append(name_node.text.decode("utf-8"))
        return tuple(names)
