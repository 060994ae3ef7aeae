"""Diagram layout block parsing and serialization."""

from diagram.block_export import diagrams_to_block, format_entry, splice_block
from diagram.main import BlockParseResult, extract_block, parse_block, parse_block_content
from diagram.types import BlockSpan, Diagram, DiagramSet, Entry, PositionEntry, WildcardEntry

__all__ = [
    "BlockParseResult",
    "BlockSpan",
    "Diagram",
    "DiagramSet",
    "Entry",
    "PositionEntry",
    "WildcardEntry",
    "diagrams_to_block",
    "extract_block",
    "format_entry",
    "parse_block",
    "parse_block_content",
    "splice_block",
]
