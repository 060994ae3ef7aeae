"""Tests for locating and parsing the layout block."""

import pytest

from diagram.main import extract_block, parse_block, parse_block_content
from diagram.types import Diagram, PositionEntry, WildcardEntry
from schema.errors import StructuralError, WarningKind

SCHEMA_FILE = """/* @erd-pets
[main]
public.*
public.users 100 200
public.posts

[billing]
billing.invoices -40.5 12
*/

CREATE TABLE public.users (id integer);
"""


def test_parse_block_reads_every_diagram() -> None:
    """Diagrams and entries keep the order they were written in."""
    diagrams, warnings = parse_block(SCHEMA_FILE)
    assert warnings == []
    assert diagrams == {
        "main": Diagram(
            "main",
            (
                WildcardEntry("public"),
                PositionEntry("public.users", 100.0, 200.0),
                PositionEntry("public.posts"),
            ),
        ),
        "billing": Diagram("billing", (PositionEntry("billing.invoices", -40.5, 12.0),)),
    }


def test_file_without_block() -> None:
    """No block is a normal state, not an error."""
    diagrams, warnings = parse_block("CREATE TABLE public.t (id integer);")
    assert diagrams is None
    assert warnings == []


def test_open_marker_is_tolerant() -> None:
    """Whitespace between the comment opener and the marker is allowed."""
    span = extract_block("SELECT 1;\n/*   @erd-pets\n[x]\n*/")
    assert span is not None
    assert span.line == 2
    assert span.content == "\n[x]\n"


def test_unterminated_block_is_ignored_with_warning() -> None:
    """A block without its closing marker counts as no block."""
    diagrams, warnings = parse_block("\n/* @erd-pets\n[main]\npublic.*\n")
    assert diagrams is None
    assert [(w.kind, w.line) for w in warnings] == [(WarningKind.SYNTAX, 2)]


def test_only_first_block_is_used() -> None:
    """Later blocks are reported and otherwise ignored."""
    text = "/* @erd-pets\n[one]\n*/\n/* @erd-pets\n[two]\n*/\n"
    diagrams, warnings = parse_block(text)
    assert diagrams is not None
    assert list(diagrams) == ["one"]
    assert warnings[0].message == "Multiple @erd-pets blocks found; using the first one"
    assert warnings[0].line == 4


def test_duplicate_diagram_name_is_structural() -> None:
    """Two diagrams with the same name cannot be told apart."""
    with pytest.raises(StructuralError, match=r"\[main\]"):
        parse_block_content("[main]\npublic.*\n[main]\n")


def test_entry_before_header_is_skipped() -> None:
    """Entries need a diagram to belong to."""
    diagrams, warnings = parse_block_content("public.users 1 2\n[main]\npublic.*", first_line=5)
    assert diagrams == {"main": Diagram("main", (WildcardEntry("public"),))}
    assert warnings[0].line == 5
    assert "before any [diagram] header" in warnings[0].message


@pytest.mark.parametrize(
    "line",
    ["public.users 100", "public.users ten twenty", "public.users 1 2 3", "public.* 1 2"],
)
def test_malformed_entry_is_skipped(line: str) -> None:
    """Bad coordinates drop the line with a warning; the diagram survives."""
    diagrams, warnings = parse_block_content(f"[main]\n{line}\npublic.posts 1 1")
    assert diagrams == {"main": Diagram("main", (PositionEntry("public.posts", 1.0, 1.0),))}
    assert len(warnings) == 1
    assert warnings[0].line == 2


def test_unknown_lines_are_ignored() -> None:
    """Lines that do not look like entries are skipped silently."""
    content = "[main]\n# a note\nlayout: grid\n\n   public.users   3   4   \n"
    diagrams, warnings = parse_block_content(content)
    assert warnings == []
    assert diagrams == {"main": Diagram("main", (PositionEntry("public.users", 3.0, 4.0),))}


def test_duplicate_entries_are_kept() -> None:
    """The parser keeps duplicates; resolution decides which one wins."""
    diagrams, _ = parse_block_content("[main]\npublic.t 1 1\npublic.t 2 2")
    assert diagrams["main"].entries == (
        PositionEntry("public.t", 1.0, 1.0),
        PositionEntry("public.t", 2.0, 2.0),
    )


def test_empty_diagram() -> None:
    """A header with no entries is a valid, empty diagram."""
    diagrams, _ = parse_block_content("[empty]\n")
    assert diagrams == {"empty": Diagram("empty")}


def test_quoted_names_are_unquoted() -> None:
    """Quoted schema and table names may hold spaces, dots and quotes."""
    content = '[main]\n"my schema".*\na."x.y" 1 2\na."say ""hi"""'
    diagrams, warnings = parse_block_content(content)
    assert warnings == []
    assert diagrams["main"].entries == (
        WildcardEntry("my schema"),
        PositionEntry("a.x.y", 1.0, 2.0),
        PositionEntry('a.say "hi"'),
    )
