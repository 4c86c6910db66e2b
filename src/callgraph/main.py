"""callgraph CLI - Build and lay out call graphs of Python and Java code."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from callgraph.builder import (
    BuildConfig,
    BuildListener,
    BuildStatus,
    BuildType,
    GraphBuilder,
)
from callgraph.analysis.graph import Graph
from callgraph.config import Settings
from callgraph.errors import ScopeResolutionError
from callgraph.index.source_index import Scope, SourceIndex, functions_named
from callgraph.layout.oracle import GraphvizLayoutOracle

console = Console()

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


class ConsoleListener(BuildListener):
    """Show build warnings and failures on the console."""

    def on_warning(self, message: str) -> None:
        console.print(f"[yellow]Warning:[/yellow] {message}")

    def on_failed(self, error: Exception) -> None:
        console.print(f"[red]Build failed:[/red] {error}")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _load_settings(args: argparse.Namespace) -> Settings:
    return Settings.from_env().replace(
        grid_size=args.grid_size,
        viewport_inset=args.inset,
        layout_program=args.layout_program,
        max_workers=args.workers,
    )


def _open_index(path: str, quiet: bool = False) -> Optional[SourceIndex]:
    """Index a source tree, printing a summary; None if the path is missing."""
    repo_path = Path(path).resolve()
    if not repo_path.is_dir():
        console.print(f"[red]Error:[/red] Path does not exist: {repo_path}")
        return None

    index = SourceIndex(repo_path)
    with console.status("[bold green]Parsing source files..."):
        stats = index.refresh()

    if quiet:
        return index

    console.print(
        f"[dim]Indexed {stats['functions_indexed']} functions from "
        f"{stats['files_parsed']} files in {repo_path}[/dim]"
    )
    if stats["errors"]:
        console.print("\n[yellow]Errors:[/yellow]")
        for error in stats["errors"][:5]:  # Show first 5
            console.print(f"  • {error}")
    return index


def _scope_from_args(args: argparse.Namespace, settings: Settings) -> Scope:
    if args.module:
        return Scope.module(args.module)
    if args.directory:
        return Scope.directory(args.directory)
    include_tests = settings.include_tests and not getattr(args, "exclude_tests", False)
    return Scope.project(include_tests=include_tests)


def cmd_functions(args: argparse.Namespace, settings: Settings) -> int:
    """List the indexed functions of a scope."""
    index = _open_index(args.path)
    if index is None:
        return EXIT_FAILED

    scope = _scope_from_args(args, settings)
    try:
        functions = index.all_functions(scope)
    except ScopeResolutionError as e:
        console.print(f"[red]Error:[/red] {e}")
        return EXIT_FAILED

    table = Table(title=f"Functions in {scope.describe()}")
    table.add_column("Function", style="cyan")
    table.add_column("Access", style="magenta")
    table.add_column("Location", style="dim")

    for function in sorted(functions, key=lambda f: (f.file_path, f.start_line)):
        table.add_row(
            f"{function.class_name + '.' if function.class_name else ''}{function.signature}",
            function.access,
            f"{index.relative_path(function.file_path)}:{function.start_line}",
        )

    console.print(table)
    return EXIT_OK


def _infer_build_type(args: argparse.Namespace, settings: Settings) -> BuildType:
    if args.type:
        return BuildType[args.type.upper().replace("-", "_")]
    if args.seed:
        return BuildType.UPSTREAM_DOWNSTREAM
    if args.module:
        return BuildType.MODULE
    if args.directory:
        return BuildType.DIRECTORY
    if settings.include_tests:
        return BuildType.WHOLE_PROJECT_WITH_TEST
    return BuildType.WHOLE_PROJECT_WITHOUT_TEST


def cmd_build(args: argparse.Namespace, settings: Settings) -> int:
    """Build, lay out and print a call graph."""
    index = _open_index(args.path, quiet=args.json)
    if index is None:
        return EXIT_FAILED

    build_type = _infer_build_type(args, settings)

    seeds = []
    if build_type.is_focused:
        if not args.seed:
            console.print(f"[red]Error:[/red] {build_type.label} builds need at least one --seed")
            return EXIT_FAILED
        seeds, missing = functions_named(index, args.seed)
        if missing:
            console.print(f"[red]Error:[/red] No function named {', '.join(missing)}")
            return EXIT_FAILED

    config = BuildConfig(
        build_type=build_type,
        focused_functions=tuple(seeds),
        module_name=args.module or "",
        directory_path=args.directory or "",
    )

    builder = GraphBuilder(
        index,
        GraphvizLayoutOracle(settings.layout_program),
        settings=settings,
        listener=ConsoleListener(),
    )
    try:
        with console.status(f"[bold green]Building {build_type.label} call graph..."):
            future = builder.submit(config)
            result = future.result()
    except KeyboardInterrupt:
        builder.cancel()
        console.print("[yellow]Build cancelled.[/yellow]")
        return EXIT_CANCELLED
    finally:
        builder.shutdown()

    if result.status is BuildStatus.CANCELLED:
        console.print("[yellow]Build cancelled.[/yellow]")
        return EXIT_CANCELLED
    if result.status is BuildStatus.FAILED:
        return EXIT_FAILED

    if args.json:
        console.print_json(data=graph_to_dict(result.graph, index))
    else:
        _print_graph(result.graph, index, build_type)
    return EXIT_OK


def graph_to_dict(graph: Graph, index: SourceIndex) -> dict:
    """JSON-friendly dump of a laid-out graph."""
    return {
        "nodes": [
            {
                "id": node.id,
                "name": node.function.qualified_name,
                "signature": node.function.signature,
                "file": index.relative_path(node.function.file_path),
                "line": node.function.start_line,
                "access": node.function.access,
                "point": list(node.point),
                "raw_layout_point": list(node.raw_layout_point),
            }
            for node in graph
        ],
        "edges": [
            {"id": edge.id, "source": edge.source.id, "target": edge.target.id}
            for edge in graph.edges
        ],
    }


def _print_graph(graph: Graph, index: SourceIndex, build_type: BuildType) -> None:
    console.print(Panel(
        f"[bold cyan]{build_type.label}[/bold cyan]\n"
        f"Nodes: {len(graph)} | Edges: {len(graph.edges)} | "
        f"Components: {len(graph.connected_components())}",
        title="Call Graph",
    ))

    node_table = Table(title="Nodes")
    node_table.add_column("Function", style="cyan")
    node_table.add_column("Location", style="dim")
    node_table.add_column("x", justify="right", style="green")
    node_table.add_column("y", justify="right", style="green")

    for node in sorted(graph, key=lambda n: (n.point.y, n.point.x)):
        function = node.function
        node_table.add_row(
            function.signature,
            f"{index.relative_path(function.file_path)}:{function.start_line}",
            f"{node.point.x:.3f}",
            f"{node.point.y:.3f}",
        )
    console.print(node_table)

    if graph.edges:
        edge_table = Table(title="Edges")
        edge_table.add_column("Caller", style="cyan")
        edge_table.add_column("Callee", style="cyan")
        for edge in graph.edges:
            callee = "[dim](self)[/dim]" if edge.is_self_loop else edge.target.function.qualified_name
            edge_table.add_row(edge.source.function.qualified_name, callee)
        console.print(edge_table)


def _build_type_choice(build_type: BuildType) -> str:
    return build_type.name.lower().replace("_", "-")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="callgraph",
        description="Build, lay out and inspect call graphs of Python and Java code",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--grid-size", type=float, help="Target layout grid spacing (default: 0.1)")
    parser.add_argument("--inset", type=float, help="Viewport margin (default: 0.1)")
    parser.add_argument("--layout-program", help="Graphviz layout program (default: dot)")
    parser.add_argument("--workers", type=int, help="Parallel reference searches (default: 4)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Functions command
    functions_parser = subparsers.add_parser("functions", help="List indexed functions")
    functions_parser.add_argument("path", help="Path to the source tree")
    scope_group = functions_parser.add_mutually_exclusive_group()
    scope_group.add_argument("--module", help="Only functions of this top-level module")
    scope_group.add_argument("--directory", help="Only functions under this directory")
    functions_parser.add_argument(
        "--exclude-tests",
        action="store_true",
        help="Leave out test files",
    )
    functions_parser.set_defaults(func=cmd_functions)

    # Build command
    build_parser = subparsers.add_parser("build", help="Build and lay out a call graph")
    build_parser.add_argument("path", help="Path to the source tree")
    build_parser.add_argument(
        "-t", "--type",
        choices=[_build_type_choice(t) for t in BuildType],
        help="Build type (default: inferred from --seed/--module/--directory)",
    )
    build_parser.add_argument(
        "-s", "--seed",
        action="append",
        default=[],
        help="Focused function name (repeatable)",
    )
    build_parser.add_argument("--module", help="Module of module builds")
    build_parser.add_argument("--directory", help="Directory of directory builds")
    build_parser.add_argument("--json", action="store_true", help="Print the graph as JSON")
    build_parser.set_defaults(func=cmd_build)

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        settings = _load_settings(args)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        return EXIT_FAILED

    return args.func(args, settings)


if __name__ == "__main__":
    sys.exit(main())
