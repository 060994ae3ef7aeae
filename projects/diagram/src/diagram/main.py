"""Locate and parse the ``/* @erd-pets ... */`` layout block."""

import re
from typing import NamedTuple

from schema.errors import ParseWarning, StructuralError, WarningKind

from diagram.types import BlockSpan, Diagram, DiagramSet, Entry, PositionEntry, WildcardEntry

BLOCK_OPEN = re.compile(r"/\*\s*@erd-pets\b")
BLOCK_CLOSE = "*/"

# Reusable regex components for the block grammar
BARE_NAME = r'[^\s."*\[\]]+'
QUOTED_NAME = r'"(?:[^"]|"")*"'
NAME = rf"(?:{QUOTED_NAME}|{BARE_NAME})"
NUMBER = r"-?\d+(?:\.\d+)?"
HEADER_PATTERN = re.compile(r"^\[(?P<name>[^\]]+)\]$")
ENTRY_PATTERN = re.compile(
    rf"^(?P<schema>{NAME})\.(?:(?P<wildcard>\*)|(?P<table>{NAME}))(?:\s+(?P<rest>.*))?$",
)
COORDINATES_PATTERN = re.compile(rf"^(?P<x>{NUMBER})\s+(?P<y>{NUMBER})$")
BARE_NAME_PATTERN = re.compile(BARE_NAME)


class BlockParseResult(NamedTuple):
    """Parsed diagrams, or None when the file has no block."""

    diagrams: DiagramSet | None
    warnings: list[ParseWarning]


def _line_at(text: str, offset: int) -> int:
    """1-based line number of ``offset`` in ``text``."""
    return text.count("\n", 0, offset) + 1


def extract_block(text: str) -> BlockSpan | None:
    """Find the first complete block in ``text``."""
    opening = BLOCK_OPEN.search(text)
    if opening is None:
        return None
    close = text.find(BLOCK_CLOSE, opening.end())
    if close == -1:
        return None
    return BlockSpan(
        start=opening.start(),
        end=close + len(BLOCK_CLOSE),
        content=text[opening.end() : close],
        line=_line_at(text, opening.end()),
    )


def _block_warnings(text: str, span: BlockSpan | None) -> list[ParseWarning]:
    """Report an unterminated block or any block after the first."""
    if span is None:
        if opening := BLOCK_OPEN.search(text):
            return [
                ParseWarning(
                    WarningKind.SYNTAX,
                    "@erd-pets block is missing its closing */",
                    _line_at(text, opening.start()),
                ),
            ]
        return []
    if extra := BLOCK_OPEN.search(text, span.end):
        return [
            ParseWarning(
                WarningKind.SYNTAX,
                "Multiple @erd-pets blocks found; using the first one",
                _line_at(text, extra.start()),
            ),
        ]
    return []


def unquote_name(text: str) -> str:
    """Name written in the block, with surrounding quotes and doubled quotes undone."""
    if text.startswith('"'):
        return text[1:-1].replace('""', '"')
    return text


def quote_name(name: str) -> str:
    """Quote a schema or table name unless it can be written bare."""
    if BARE_NAME_PATTERN.fullmatch(name):
        return name
    return '"' + name.replace('"', '""') + '"'


def _parse_entry(match: re.Match[str]) -> Entry:
    """Build an entry from a matched line, raising ValueError for bad coordinates."""
    rest = (match["rest"] or "").strip()
    schema_name = unquote_name(match["schema"])
    if match["wildcard"]:
        if rest:
            msg = f'Wildcard "{match["schema"]}.*" cannot have coordinates'
            raise ValueError(msg)
        return WildcardEntry(schema_name)

    qualified_name = f"{schema_name}.{unquote_name(match['table'])}"
    if not rest:
        return PositionEntry(qualified_name)
    coordinates = COORDINATES_PATTERN.match(rest)
    if coordinates is None:
        msg = f'Invalid coordinates for "{qualified_name}": expected "x y"'
        raise ValueError(msg)
    return PositionEntry(qualified_name, float(coordinates["x"]), float(coordinates["y"]))


def parse_block_content(
    content: str,
    first_line: int = 1,
) -> tuple[DiagramSet, list[ParseWarning]]:
    """Parse the text between the block markers into diagrams.

    Blank lines and lines that do not look like entries are ignored so newer
    syntax does not disturb older readers. Entries are kept exactly as written,
    duplicates included. A repeated diagram name raises StructuralError.
    """
    collected: dict[str, list[Entry]] = {}
    warnings: list[ParseWarning] = []
    current: list[Entry] | None = None

    for offset, raw_line in enumerate(content.split("\n")):
        line_number = first_line + offset
        line = raw_line.strip()
        if not line:
            continue

        if header := HEADER_PATTERN.match(line):
            name = header["name"].strip()
            if name in collected:
                msg = f'Diagram "[{name}]" is declared more than once (line {line_number})'
                raise StructuralError(msg)
            current = collected[name] = []
            continue

        entry_match = ENTRY_PATTERN.match(line)
        if entry_match is None:
            continue
        if current is None:
            warnings.append(
                ParseWarning(
                    WarningKind.SYNTAX,
                    f'Entry "{line}" appears before any [diagram] header',
                    line_number,
                ),
            )
            continue
        try:
            current.append(_parse_entry(entry_match))
        except ValueError as err:
            warnings.append(ParseWarning(WarningKind.SYNTAX, str(err), line_number))

    diagrams = {name: Diagram(name, tuple(entries)) for name, entries in collected.items()}
    return diagrams, warnings


def parse_block(text: str) -> BlockParseResult:
    """Extract and parse the layout block of a schema file.

    A file without a block is a normal state and yields ``diagrams=None``.
    """
    span = extract_block(text)
    warnings = _block_warnings(text, span)
    if span is None:
        return BlockParseResult(None, warnings)
    diagrams, content_warnings = parse_block_content(span.content, span.line)
    return BlockParseResult(diagrams, warnings + content_warnings)
