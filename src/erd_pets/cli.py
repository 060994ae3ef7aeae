"""Command line interface for ERD Pets."""

import asyncio
import logging
import sys
from json import dumps
from pathlib import Path
from typing import Literal

from cyclopts import App
from diagram import Diagram, PositionEntry, WildcardEntry
from filesync import (
    FileSyncController,
    IOFailure,
    LoadResult,
    PathFileIO,
    load,
    load_settings,
    prepare_save,
    refresh,
    resolve,
    settings_generator,
)
from reconcile import PositionGenerator, RenderModel
from reconcile.placement import Strategy
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from schema import ParseWarning, StructuralError, WarningKind

app = App(help="ERD Pets CLI tool")

type Format = Literal["table", "json"]

console = Console()
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    """Print error message to stderr."""
    err_console.print(f"[bold red]Error:[/] {escape(message)}")


def print_warning(warning: ParseWarning) -> None:
    """Print a parse warning to stderr."""
    colour = "yellow" if warning.kind is WarningKind.SYNTAX else "magenta"
    err_console.print(f"[bold {colour}]{warning.kind}:[/] {escape(str(warning))}", highlight=False)


def print_success(message: str) -> None:
    """Print success message to stderr."""
    err_console.print(f"[bold green]✓[/] {message}")


def print_info(message: str) -> None:
    """Print info message to stderr."""
    err_console.print(f"[bold blue]i[/] {message}")


def read_schema_file(location: Path) -> str:
    """Read a schema file, exiting with an error if it cannot be read."""
    if not location.is_file():
        print_error(f"Schema file does not exist: {location}")
        sys.exit(1)
    try:
        return location.read_bytes().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print_error(f"Cannot read schema file: {location} ({e})")
        sys.exit(1)


def load_schema_file(location: Path) -> tuple[str, LoadResult]:
    """Read and parse a schema file, exiting on structural errors."""
    text = read_schema_file(location)
    try:
        result = load(text)
    except StructuralError as e:
        print_error(str(e))
        sys.exit(1)
    return text, result


def build_generator(
    location: Path,
    strategy: Strategy | None = None,
    seed: int | None = None,
) -> PositionGenerator:
    """Generator from the settings file with command line overrides."""
    try:
        settings = load_settings(location)
        if strategy is not None and strategy != settings["strategy"]:
            settings = {"strategy": strategy}
        if seed is not None:
            settings["seed"] = seed
        return settings_generator(settings)
    except ValueError as e:
        print_error(f"Invalid layout settings: {e}")
        sys.exit(1)


def pick_diagram(result: LoadResult, diagram: str | None) -> str:
    """Requested diagram name, or the first one in the file."""
    if diagram is None:
        return next(iter(result.diagrams))
    if diagram not in result.diagrams:
        print_error(
            f"Unknown diagram '{diagram}'. Available: {', '.join(result.diagrams)}",
        )
        sys.exit(1)
    return diagram


def diagram_summary(diagram: Diagram) -> dict[str, int | str]:
    """Name and entry counts of one diagram."""
    wildcards = sum(isinstance(e, WildcardEntry) for e in diagram.entries)
    explicit = sum(isinstance(e, PositionEntry) for e in diagram.entries)
    return {"name": diagram.name, "wildcards": wildcards, "tables": explicit}


def render_model_to_dict(name: str, model: RenderModel) -> dict[str, object]:
    """Render model as plain JSON-ready data."""
    return {
        "diagram": name,
        "nodes": [
            {
                "name": node.qualified_name,
                "x": node.x,
                "y": node.y,
                "columns": [column.name for column in node.table.columns],
            }
            for node in model.nodes
        ],
        "edges": [
            {
                "from": edge.from_qualified_name,
                "from_column": edge.foreign_key.source_column,
                "to": edge.to_qualified_name,
                "to_column": edge.foreign_key.target_column,
            }
            for edge in model.edges
        ],
    }


def format_render_model(name: str, model: RenderModel) -> None:
    """Format nodes and edges of a diagram as rich tables."""
    nodes = Table(title=f"Diagram [{name}]")
    nodes.add_column("Table", style="bold cyan")
    nodes.add_column("X", justify="right")
    nodes.add_column("Y", justify="right")
    nodes.add_column("Columns", justify="right")
    for node in model.nodes:
        nodes.add_row(
            node.qualified_name,
            str(round(node.x)),
            str(round(node.y)),
            str(len(node.table.columns)),
        )
    console.print(nodes)

    if not model.edges:
        console.print("No relationships between the tables on this diagram.")
        return
    edges = Table(title="Relationships")
    edges.add_column("From", style="bold yellow")
    edges.add_column("To", style="bold yellow")
    for edge in model.edges:
        fk = edge.foreign_key
        edges.add_row(
            f"{fk.source_table}.{fk.source_column}",
            f"{fk.target_table}.{fk.target_column}",
        )
    console.print(edges)


@app.command
def diagrams(location: Path, fmt: Format = "table") -> None:
    """List the diagrams stored in a schema file."""
    _, result = load_schema_file(location)
    summaries = [diagram_summary(d) for d in result.diagrams.values()]

    if fmt == "json":
        sys.stdout.write(dumps(summaries))
        return

    if not result.has_block:
        print_info("No @erd-pets block found, showing the default diagram")
    table = Table(title="Diagrams")
    table.add_column("Name", style="bold cyan")
    table.add_column("Wildcards", justify="right")
    table.add_column("Tables", justify="right")
    for summary in summaries:
        table.add_row(str(summary["name"]), str(summary["wildcards"]), str(summary["tables"]))
    console.print(table)


@app.command
def show(location: Path, diagram: str | None = None, fmt: Format = "table") -> None:
    """Resolve a diagram and print its tables and relationships."""
    _, result = load_schema_file(location)
    name = pick_diagram(result, diagram)
    model = resolve(name, result.schema, result.diagrams, build_generator(location))

    if fmt == "json":
        sys.stdout.write(dumps(render_model_to_dict(name, model)))
        return
    format_render_model(name, model)


@app.command
def check(location: Path) -> None:
    """Report every problem found while parsing a schema file."""
    _, result = load_schema_file(location)
    for warning in result.warnings:
        print_warning(warning)

    print_info(
        f"{len(result.schema)} tables, {len(result.schema.foreign_keys)} foreign keys, "
        f"{len(result.diagrams)} diagrams",
    )
    if result.warnings:
        print_info(f"{len(result.warnings)} warnings")
    else:
        print_success("No problems found")


async def write_layout(
    location: Path,
    diagram: str | None,
    generator: PositionGenerator,
) -> str:
    """Load, refresh and save a file in place through the controller."""
    controller = FileSyncController(PathFileIO(location), generator=generator)
    await controller.load()
    if diagram is not None:
        controller.select(diagram)
    await controller.refresh()
    return await controller.save()


@app.command
def layout(
    location: Path,
    diagram: str | None = None,
    strategy: Strategy | None = None,
    *,
    seed: int | None = None,
    write: bool = False,
) -> None:
    """Give every table a position and store the layout in the file."""
    text, result = load_schema_file(location)
    name = pick_diagram(result, diagram)
    generator = build_generator(location, strategy, seed)

    for warning in result.warnings:
        print_warning(warning)

    if write:
        try:
            asyncio.run(write_layout(location, name, generator))
        except IOFailure as e:
            print_error(str(e))
            sys.exit(1)
        print_success(f"Layout written to {location}")
        return

    refreshed = refresh(name, text, result.diagrams, generator)
    positions = refreshed.render_model.positions()
    sys.stdout.write(prepare_save(text, refreshed.diagrams, name, positions, generator))


def main() -> None:
    """Entry point for the CLI."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )
    app()


if __name__ == "__main__":
    main()
