"""Reconciliation of parsed schemas with stored diagram layouts."""

from reconcile.main import (
    build_render_model,
    commit_for_save,
    fill_missing_positions,
    materialize,
    prune_entries,
    refresh,
    resolve,
    save_to_file,
    select_tables,
)
from reconcile.placement import circular_positions, make_generator, scatter_positions
from reconcile.types import Edge, Node, Position, PositionGenerator, RenderModel

__all__ = [
    "Edge",
    "Node",
    "Position",
    "PositionGenerator",
    "RenderModel",
    "build_render_model",
    "circular_positions",
    "commit_for_save",
    "fill_missing_positions",
    "make_generator",
    "materialize",
    "prune_entries",
    "refresh",
    "resolve",
    "save_to_file",
    "scatter_positions",
    "select_tables",
]
