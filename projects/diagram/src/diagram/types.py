"""Records for the diagram layout block embedded in a schema file."""

from typing import NamedTuple


class PositionEntry(NamedTuple):
    """An explicit table entry; coordinates are None until the table is placed."""

    qualified_name: str
    x: float | None = None
    y: float | None = None

    @property
    def has_position(self) -> bool:
        """Whether both coordinates are known."""
        return self.x is not None and self.y is not None


class WildcardEntry(NamedTuple):
    """Includes every table of one schema, resolved against the current schema."""

    schema_name: str


type Entry = PositionEntry | WildcardEntry


class Diagram(NamedTuple):
    """A named view: entries in the order they were written."""

    name: str
    entries: tuple[Entry, ...] = ()


# Diagram name -> diagram, in declaration order
type DiagramSet = dict[str, Diagram]


class BlockSpan(NamedTuple):
    """Location of the block inside the file text."""

    start: int  # Offset of the opening "/*"
    end: int  # Offset just past the closing "*/"
    content: str  # Text between the markers
    line: int  # 1-based line on which the content starts
