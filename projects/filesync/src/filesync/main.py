"""Load, refresh and save operations exposed to the UI layer."""

from collections.abc import Mapping
from logging import getLogger
from typing import NamedTuple

from diagram.main import parse_block
from diagram.types import Diagram, DiagramSet, WildcardEntry
from reconcile.main import commit_for_save, fill_missing_positions, save_to_file
from reconcile.main import refresh as refresh_diagram
from reconcile.placement import circular_positions
from reconcile.types import Position, PositionGenerator, RenderModel
from schema.errors import ParseWarning, StructuralError
from schema.main import ParseResult, parse_sql
from schema.types import Schema

logger = getLogger(__name__)

DEFAULT_DIAGRAM = "main"


class LoadResult(NamedTuple):
    """Everything known about a file right after opening it."""

    schema: Schema
    diagrams: DiagramSet
    warnings: list[ParseWarning]
    has_block: bool  # False when the diagrams are the generated default


class RefreshResult(NamedTuple):
    """Outcome of re-reading the SQL while keeping the in-memory layout."""

    schema: Schema
    render_model: RenderModel
    diagrams: DiagramSet
    warnings: list[ParseWarning]


def _by_line(warnings: list[ParseWarning]) -> list[ParseWarning]:
    return sorted(warnings, key=lambda warning: warning.line or 0)


def parse_schema(text: str) -> ParseResult:
    """Parse the SQL in ``text``, raising StructuralError if no table survives."""
    result = parse_sql(text)
    if not result.schema.tables:
        msg = "No CREATE TABLE statements could be parsed"
        if result.warnings:
            msg += f" ({len(result.warnings)} statement(s) skipped)"
        raise StructuralError(msg)
    return result


def default_diagrams(schema: Schema) -> DiagramSet:
    """One diagram showing every schema through wildcards."""
    entries = tuple(WildcardEntry(name) for name in schema.schemas())
    return {DEFAULT_DIAGRAM: Diagram(DEFAULT_DIAGRAM, entries)}


def load(text: str) -> LoadResult:
    """Parse schema and diagrams from the full file text."""
    schema, schema_warnings = parse_schema(text)
    diagrams, block_warnings = parse_block(text)
    has_block = diagrams is not None
    if not diagrams:
        logger.debug("No diagrams stored in file, using the default diagram")
        diagrams = default_diagrams(schema)
    return LoadResult(schema, diagrams, _by_line(schema_warnings + block_warnings), has_block)


def list_diagrams(diagrams: Mapping[str, Diagram]) -> list[str]:
    """Diagram names in declaration order."""
    return list(diagrams)


def refresh(
    diagram_name: str,
    new_text: str,
    diagrams: Mapping[str, Diagram],
    generator: PositionGenerator = circular_positions,
) -> RefreshResult:
    """Re-parse the SQL and reconcile the in-memory diagrams with it."""
    schema, warnings = parse_schema(new_text)
    render_model, updated = refresh_diagram(diagram_name, schema, diagrams, generator)
    return RefreshResult(schema, render_model, updated, _by_line(warnings))


def prepare_diagrams(
    diagrams: Mapping[str, Diagram],
    diagram_name: str,
    live_positions: Mapping[str, Position],
    generator: PositionGenerator = circular_positions,
) -> DiagramSet:
    """Commit live positions and place anything still unpositioned."""
    committed = commit_for_save(diagrams, diagram_name, live_positions)
    return fill_missing_positions(committed, generator)


def prepare_save(
    text: str,
    diagrams: Mapping[str, Diagram],
    diagram_name: str,
    live_positions: Mapping[str, Position],
    generator: PositionGenerator = circular_positions,
) -> str:
    """New file text with the updated block spliced into ``text``."""
    prepared = prepare_diagrams(diagrams, diagram_name, live_positions, generator)
    return save_to_file(text, prepared)
