"""Reconcile a parsed schema with stored diagram layouts.

Resolution is a pure function of (diagram name, schema, diagrams): wildcard
entries decide membership first, explicit entries are overlaid second, and
whatever is still unplaced is handed to a position generator.
"""

from collections.abc import Mapping, Sequence

from diagram.block_export import diagrams_to_block, splice_block
from diagram.types import Diagram, DiagramSet, Entry, PositionEntry, WildcardEntry
from schema.types import Schema

from reconcile.placement import circular_positions, schema_of
from reconcile.types import Edge, Node, Position, PositionGenerator, RenderModel


def get_diagram(diagrams: Mapping[str, Diagram], name: str) -> Diagram:
    """Look up a diagram by name."""
    try:
        return diagrams[name]
    except KeyError as err:
        msg = f"Unknown diagram: {name}"
        raise ValueError(msg) from err


def _entry_position(entry: PositionEntry) -> Position | None:
    if entry.x is None or entry.y is None:
        return None
    return Position(entry.x, entry.y)


def select_tables(diagram: Diagram, schema: Schema) -> dict[str, Position | None]:
    """Tables shown by ``diagram`` with their stored position, in display order.

    Membership comes from wildcards and explicit entries alike, each table at
    most once. Stored positions come only from explicit entries; the last
    positioned entry for a table wins. Entries naming tables that are not in
    ``schema`` are ignored.
    """
    members: dict[str, Position | None] = {}
    for entry in diagram.entries:
        names = (
            schema.tables_in(entry.schema_name)
            if isinstance(entry, WildcardEntry)
            else [entry.qualified_name]
        )
        for name in names:
            if name in schema:
                members.setdefault(name, None)

    for entry in diagram.entries:
        if isinstance(entry, PositionEntry) and entry.qualified_name in members:
            if (position := _entry_position(entry)) is not None:
                members[entry.qualified_name] = position
    return members


def generate_positions(
    generator: PositionGenerator,
    existing: Mapping[str, Position],
    new_ids: Sequence[str],
) -> dict[str, Position]:
    """Call ``generator`` and check it placed every requested id."""
    if not new_ids:
        return {}
    generated = generator(existing, new_ids)
    if missing := [name for name in new_ids if name not in generated]:
        msg = f"Position generator returned no position for: {', '.join(missing)}"
        raise ValueError(msg)
    return {name: Position(*generated[name]) for name in new_ids}


def place_tables(
    selected: Mapping[str, Position | None],
    generator: PositionGenerator,
) -> dict[str, Position]:
    """Fill in a position for every selected table that lacks one."""
    placed = {name: pos for name, pos in selected.items() if pos is not None}
    missing = [name for name, pos in selected.items() if pos is None]
    generated = generate_positions(generator, placed, missing)
    return {name: pos if pos is not None else generated[name] for name, pos in selected.items()}


def build_render_model(schema: Schema, positions: Mapping[str, Position]) -> RenderModel:
    """Nodes for the placed tables and edges for keys between two of them."""
    nodes = tuple(
        Node(name, position.x, position.y, schema.tables[name])
        for name, position in positions.items()
    )
    edges = tuple(
        Edge(fk.source_table, fk.target_table, fk)
        for fk in schema.foreign_keys
        if fk.source_table in positions and fk.target_table in positions
    )
    return RenderModel(nodes, edges)


def resolve(
    diagram_name: str,
    schema: Schema,
    diagrams: Mapping[str, Diagram],
    generator: PositionGenerator = circular_positions,
) -> RenderModel:
    """Build the render model for one diagram."""
    diagram = get_diagram(diagrams, diagram_name)
    positions = place_tables(select_tables(diagram, schema), generator)
    return build_render_model(schema, positions)


def prune_entries(diagram: Diagram, schema: Schema) -> Diagram:
    """Drop explicit entries for tables that no longer exist; keep all wildcards."""
    return diagram._replace(
        entries=tuple(
            entry
            for entry in diagram.entries
            if isinstance(entry, WildcardEntry) or entry.qualified_name in schema
        ),
    )


def materialize(diagram: Diagram, positions: Mapping[str, Position]) -> Diagram:
    """Write ``positions`` into the diagram as explicit entries.

    Existing explicit entries take the new coordinates. Tables that only
    arrived through a wildcard get a new entry right after that wildcard, or
    at the end when no wildcard in the diagram matches them. Wildcards are
    kept as they are.
    """
    explicit = {e.qualified_name for e in diagram.entries if isinstance(e, PositionEntry)}
    pending = [name for name in positions if name not in explicit]

    entries: list[Entry] = []
    for entry in diagram.entries:
        if isinstance(entry, WildcardEntry):
            entries.append(entry)
            matched = [name for name in pending if schema_of(name) == entry.schema_name]
            entries.extend(PositionEntry(name, *positions[name]) for name in matched)
            pending = [name for name in pending if name not in matched]
        elif (position := positions.get(entry.qualified_name)) is not None:
            entries.append(entry._replace(x=position.x, y=position.y))
        else:
            entries.append(entry)

    entries.extend(PositionEntry(name, *positions[name]) for name in pending)
    return diagram._replace(entries=tuple(entries))


def refresh(
    diagram_name: str,
    schema: Schema,
    diagrams: Mapping[str, Diagram],
    generator: PositionGenerator = circular_positions,
) -> tuple[RenderModel, DiagramSet]:
    """Re-resolve a diagram against a newly parsed schema.

    Tables keep the positions they already have, removed tables lose their
    entries and newly matched tables are placed. The placed positions are
    written back so a second refresh against the same schema changes nothing.
    """
    diagram = prune_entries(get_diagram(diagrams, diagram_name), schema)
    positions = place_tables(select_tables(diagram, schema), generator)
    updated = {**diagrams, diagram_name: materialize(diagram, positions)}
    return build_render_model(schema, positions), updated


def commit_for_save(
    diagrams: Mapping[str, Diagram],
    diagram_name: str,
    positions: Mapping[str, Position],
) -> DiagramSet:
    """Turn the on-screen positions of one diagram into explicit entries."""
    diagram = get_diagram(diagrams, diagram_name)
    return {**diagrams, diagram_name: materialize(diagram, positions)}


def fill_missing_positions(
    diagrams: Mapping[str, Diagram],
    generator: PositionGenerator = circular_positions,
) -> DiagramSet:
    """Give every remaining unpositioned entry, in every diagram, a position."""
    filled: DiagramSet = {}
    for name, diagram in diagrams.items():
        stored = {
            e.qualified_name: position
            for e in diagram.entries
            if isinstance(e, PositionEntry) and (position := _entry_position(e)) is not None
        }
        missing = list(
            dict.fromkeys(
                e.qualified_name
                for e in diagram.entries
                if isinstance(e, PositionEntry) and e.qualified_name not in stored
            ),
        )
        if not missing:
            filled[name] = diagram
            continue
        lookup = stored | generate_positions(generator, stored, missing)
        filled[name] = diagram._replace(
            entries=tuple(
                e._replace(x=lookup[e.qualified_name].x, y=lookup[e.qualified_name].y)
                if isinstance(e, PositionEntry) and not e.has_position
                else e
                for e in diagram.entries
            ),
        )
    return filled


def save_to_file(original_text: str, diagrams: Mapping[str, Diagram]) -> str:
    """Splice the serialized diagrams into the original file text.

    Every explicit entry must already carry coordinates.
    """
    return splice_block(original_text, diagrams_to_block(diagrams, strict=True))
