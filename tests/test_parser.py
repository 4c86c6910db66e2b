"""Tests for the parser module."""

import textwrap
from pathlib import Path

import pytest

from callgraph.parser.base import Function, FunctionMetadata
from callgraph.parser.java_parser import JavaParser
from callgraph.parser.python_parser import PythonParser


@pytest.fixture
def parse(tmp_path):
    def _parse(parser, code: str, filename: str) -> list[FunctionMetadata]:
        path = tmp_path / filename
        path.write_text(textwrap.dedent(code))
        return parser.parse_file(path)

    return _parse


class TestJavaParser:
    """Tests for JavaParser."""

    def setup_method(self):
        self.parser = JavaParser()

    def test_extensions(self):
        assert self.parser.language == "java"
        assert self.parser.can_parse(Path("Invoice.java"))
        assert not self.parser.can_parse(Path("invoice.py"))

    def test_method_identity(self, parse):
        methods = parse(self.parser, """
            public class Invoice {
                public long total(long net, long tax) {
                    return net + tax;
                }
            }
        """, "Invoice.java")

        (method,) = methods
        assert method.qualified_name == "Invoice.total"
        assert method.function.parameters == ("net", "tax")
        assert method.function.signature == "total(net, tax)"
        assert method.function.language == "java"
        assert (method.function.start_line, method.end_line) == (3, 5)
        assert method.line_count == 3

    def test_access_levels(self, parse):
        methods = parse(self.parser, """
            class Ledger {
                public void post() {}
                protected void reconcile() {}
                private void lock() {}
                void archive() {}
                @Override public String toString() { return ""; }
            }
        """, "Ledger.java")

        assert {m.name: m.function.access for m in methods} == {
            "post": "public",
            "reconcile": "protected",
            "lock": "private",
            "archive": "package",
            "toString": "public",
        }

    def test_constructors_and_varargs(self, parse):
        methods = parse(self.parser, """
            public class Batch {
                public Batch(String name, int... sizes) {
                    this.name = name;
                }
            }
        """, "Batch.java")

        assert [m.qualified_name for m in methods] == ["Batch.Batch"]
        assert methods[0].function.parameters == ("name", "sizes")

    def test_calls_and_constructed_types(self, parse):
        methods = parse(self.parser, """
            public class Checkout {
                public void submit(Cart cart) {
                    check(cart);
                    Order order = new Order<Cart>(cart);
                    gateway.charge(order);
                    check(cart);
                }
            }
        """, "Checkout.java")

        assert methods[0].calls == ["check", "Order", "charge"]

    def test_interface_and_enum_members_take_their_type_name(self, parse):
        methods = parse(self.parser, """
            interface Shape {
                double area();
            }

            enum Unit {
                CM;
                double scale() { return 1.0; }
            }
        """, "Shapes.java")

        assert [m.qualified_name for m in methods] == ["Shape.area", "Unit.scale"]

    def test_imports(self, parse):
        methods = parse(self.parser, """
            import java.util.Map;
            import static java.util.Objects.requireNonNull;

            class Registry {
                Map<String, String> entries() { return null; }
            }
        """, "Registry.java")

        assert methods[0].imports == ["java.util.Map", "static java.util.Objects.requireNonNull"]

    def test_unreadable_file_yields_nothing(self):
        assert self.parser.parse_file(Path("/nonexistent/Missing.java")) == []


class TestPythonParser:
    """Tests for PythonParser."""

    def setup_method(self):
        self.parser = PythonParser()

    def test_extensions(self):
        assert self.parser.language == "python"
        assert self.parser.can_parse(Path("billing.py"))
        assert not self.parser.can_parse(Path("Billing.java"))

    def test_module_function(self, parse):
        (function,) = parse(self.parser, """
            def refund(order, amount=None):
                return amount or order.total
        """, "billing.py")

        assert function.function.class_name is None
        assert function.qualified_name == "refund"
        assert function.function.signature == "refund(order, amount)"

    def test_method_parameters_drop_the_receiver(self, parse):
        (function,) = parse(self.parser, """
            class Ledger:
                def post(self, entry: str, *entries, strict: bool = True, **tags):
                    return entry
        """, "ledger.py")

        assert function.qualified_name == "Ledger.post"
        assert function.function.parameters == ("entry", "*entries", "strict", "**tags")

    def test_access_by_naming_convention(self, parse):
        functions = parse(self.parser, """
            class Cache:
                def __len__(self):
                    return 0

                def get(self, key):
                    pass

                def _evict(self):
                    pass

                def __rehash(self):
                    pass
        """, "cache.py")

        assert {f.name: f.function.access for f in functions} == {
            "__len__": "public",
            "get": "public",
            "_evict": "protected",
            "__rehash": "private",
        }

    def test_calls_are_unique_simple_names(self, parse):
        (function,) = parse(self.parser, """
            def settle(account):
                check(account)
                balance = account.ledger.balance()
                check(balance)
                handlers[0](balance)
        """, "settle.py")

        assert function.calls == ["check", "balance", "handlers[0]"]

    def test_imports_and_class_context(self, parse):
        functions = parse(self.parser, """
            import os
            from pathlib import Path


            def top():
                return os.getcwd()


            class Outer:
                def method(self):
                    def inner():
                        return Path(".")
                    return inner()
        """, "nested.py")

        assert [f.qualified_name for f in functions] == ["top", "Outer.method", "Outer.inner"]
        assert functions[0].imports == ["import os", "from pathlib import Path"]
        assert functions[0].calls == ["getcwd"]
        assert functions[1].calls == ["Path", "inner"]

    def test_reparse_yields_equal_identities(self, parse, tmp_path):
        (first,) = parse(self.parser, "def helper():\n    return 1\n", "helper.py")
        (second,) = self.parser.parse_file(tmp_path / "helper.py")

        assert first.function == second.function
        assert hash(first.function) == hash(second.function)


class TestFunction:
    """Tests for the Function identity and FunctionMetadata."""

    def test_qualified_name(self):
        method = Function(name="post", file_path="/Ledger.java", start_line=1, class_name="Ledger")
        function = Function(name="post", file_path="/ledger.py", start_line=1)

        assert method.qualified_name == str(method) == "Ledger.post"
        assert function.qualified_name == "post"

    def test_descriptive_fields_do_not_change_identity(self):
        a = Function(name="post", file_path="/a.py", start_line=3, access="public", parameters=("x",))
        b = Function(name="post", file_path="/a.py", start_line=3, access="protected", parameters=())
        c = Function(name="post", file_path="/a.py", start_line=4)

        assert a == b
        assert len({a, b, c}) == 2

    def test_signature_without_parameters(self):
        assert Function(name="run", file_path="/a.py", start_line=1).signature == "run"

    def test_to_dict(self):
        metadata = FunctionMetadata(
            function=Function(
                name="post",
                file_path="/Ledger.java",
                start_line=10,
                class_name="Ledger",
                language="java",
                access="protected",
                parameters=("entry",),
            ),
            end_line=20,
            code="void post(Entry entry) {}",
            calls=["validate", "append"],
            imports=["java.util.List"],
        )

        assert metadata.to_dict() == {
            "name": "post",
            "qualified_name": "Ledger.post",
            "signature": "post(entry)",
            "file_path": "/Ledger.java",
            "start_line": 10,
            "end_line": 20,
            "language": "java",
            "access": "protected",
            "class_name": "Ledger",
            "calls": ["validate", "append"],
            "imports": ["java.util.List"],
        }


@pytest.mark.parametrize("parser_cls, filename", [(JavaParser, "Empty.java"), (PythonParser, "empty.py")])
def test_empty_file_has_no_functions(parse, parser_cls, filename):
    assert parse(parser_cls(), "", filename) == []
