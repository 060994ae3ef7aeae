"""Position generators for tables that have no stored position."""

from collections import defaultdict
from collections.abc import Mapping, Sequence
from functools import partial
from math import cos, pi, sin
from random import Random
from typing import Any, Literal

from reconcile.types import Position, PositionGenerator

type Strategy = Literal["circular", "scatter"]

# Circular layout
MIN_RADIUS = 200
RADIUS_PER_NODE = 50
SCHEMA_SPACING = 600
NODE_WIDTH = 250  # Rough width of a rendered table, used to clear existing nodes
MARGIN = 50

# Scatter layout
SCATTER_WIDTH = 800
SCATTER_HEIGHT = 600


def schema_of(qualified_name: str) -> str:
    """Schema segment of a qualified name."""
    return qualified_name.partition(".")[0]


def circle(
    ids: Sequence[str],
    center_x: float,
    center_y: float,
    radius: float,
) -> dict[str, Position]:
    """Place ids evenly on a circle, alphabetically, clockwise from the top."""
    ordered = sorted(ids)
    step = 2 * pi / len(ordered)
    start = -pi / 2
    return {
        name: Position(
            round(center_x + radius * cos(start + index * step)),
            round(center_y + radius * sin(start + index * step)),
        )
        for index, name in enumerate(ordered)
    }


def circular_positions(
    existing: Mapping[str, Position],
    new_ids: Sequence[str],
    *,
    radius: float | None = None,
    schema_spacing: float = SCHEMA_SPACING,
) -> dict[str, Position]:
    """Lay new tables out on one circle per schema.

    Circles run left to right in schema order and start to the right of the
    existing nodes so nothing already placed is covered.
    """
    if not new_ids:
        return {}

    groups: defaultdict[str, list[str]] = defaultdict(list)
    for name in new_ids:
        groups[schema_of(name)].append(name)

    left = max((p.x for p in existing.values()), default=-NODE_WIDTH) + NODE_WIDTH
    top = min((p.y for p in existing.values()), default=0)

    positions: dict[str, Position] = {}
    for schema_name in sorted(groups):
        members = groups[schema_name]
        group_radius = radius or max(MIN_RADIUS, len(members) * RADIUS_PER_NODE)
        center_x = left + group_radius + MARGIN
        center_y = top + group_radius + MARGIN
        positions.update(circle(members, center_x, center_y, group_radius))
        left = center_x + group_radius + schema_spacing
    return positions


def scatter_positions(
    existing: Mapping[str, Position],  # noqa: ARG001
    new_ids: Sequence[str],
    *,
    seed: int | None = None,
    width: float = SCATTER_WIDTH,
    height: float = SCATTER_HEIGHT,
    margin: float = MARGIN,
) -> dict[str, Position]:
    """Drop new tables at uniformly random points inside a fixed box."""
    rng = Random(seed)  # noqa: S311
    return {
        name: Position(
            round(margin + rng.uniform(0, width)),
            round(margin + rng.uniform(0, height)),
        )
        for name in new_ids
    }


STRATEGIES: dict[str, Any] = {
    "circular": circular_positions,
    "scatter": scatter_positions,
}


def make_generator(strategy: str = "circular", **options: Any) -> PositionGenerator:  # noqa: ANN401
    """Bind layout options to a named strategy."""
    try:
        function = STRATEGIES[strategy]
    except KeyError as err:
        msg = f"Unknown layout strategy: {strategy}"
        raise ValueError(msg) from err
    return partial(function, **options)
