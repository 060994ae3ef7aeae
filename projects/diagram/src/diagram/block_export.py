"""Render diagrams back into block text and splice it into a file."""

from collections.abc import Mapping

from diagram.main import extract_block, quote_name
from diagram.types import Diagram, Entry, WildcardEntry

BLOCK_HEADER = "/* @erd-pets"
BLOCK_FOOTER = "*/"


def format_qualified_name(qualified_name: str) -> str:
    """Write ``schema.table`` with each part quoted where needed."""
    schema_name, _, table_name = qualified_name.partition(".")
    return f"{quote_name(schema_name)}.{quote_name(table_name)}"


def format_entry(entry: Entry, *, strict: bool = False) -> str:
    """Format one entry line; coordinates are rounded to whole pixels.

    With ``strict`` an entry without coordinates raises ValueError instead of
    being written as a bare name.
    """
    if isinstance(entry, WildcardEntry):
        return f"{quote_name(entry.schema_name)}.*"
    name = format_qualified_name(entry.qualified_name)
    if entry.x is None or entry.y is None:
        if strict:
            msg = f'Entry "{entry.qualified_name}" has no position'
            raise ValueError(msg)
        return name
    return f"{name} {round(entry.x)} {round(entry.y)}"


def diagram_to_lines(diagram: Diagram, *, strict: bool = False) -> list[str]:
    """Header line followed by one line per entry."""
    return [f"[{diagram.name}]", *(format_entry(e, strict=strict) for e in diagram.entries)]


def diagrams_to_block(diagrams: Mapping[str, Diagram], *, strict: bool = False) -> str:
    """Render every diagram, in order, as a complete comment block."""
    sections = ["\n".join(diagram_to_lines(d, strict=strict)) for d in diagrams.values()]
    return "\n".join((BLOCK_HEADER, "\n\n".join(sections), BLOCK_FOOTER))


def splice_block(text: str, block: str) -> str:
    """Replace the first block in ``text`` with ``block``, or prepend it.

    Everything outside the replaced span is passed through untouched.
    """
    span = extract_block(text)
    if span is None:
        return f"{block}\n\n{text}"
    return text[: span.start] + block + text[span.end :]
