"""Render model produced by reconciling a schema with a diagram."""

from collections.abc import Callable, Mapping, Sequence
from typing import NamedTuple

from schema.types import ForeignKey, Table


class Position(NamedTuple):
    """Top-left corner of a table on the canvas, in pixels."""

    x: float
    y: float


class Node(NamedTuple):
    """A table placed on the canvas."""

    qualified_name: str
    x: float
    y: float
    table: Table

    @property
    def position(self) -> Position:
        """The node's coordinates."""
        return Position(self.x, self.y)


class Edge(NamedTuple):
    """A foreign key drawn from the owning table to the referenced table."""

    from_qualified_name: str
    to_qualified_name: str
    foreign_key: ForeignKey


class RenderModel(NamedTuple):
    """Everything needed to draw one diagram."""

    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()

    def positions(self) -> dict[str, Position]:
        """Current position of every node keyed by qualified name."""
        return {node.qualified_name: node.position for node in self.nodes}


# (already placed nodes, ids to place) -> one position per id to place
type PositionGenerator = Callable[
    [Mapping[str, Position], Sequence[str]],
    Mapping[str, Position],
]
