"""Stateful load, edit and save cycle for one schema file.

The controller owns the file text, the parsed schema, the diagram set and the
live positions of the active diagram. Only one load, refresh or save runs at a
time. Every operation takes a request id; a result that arrives after a newer
request was issued is discarded instead of overwriting newer state.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from enum import StrEnum, auto
from itertools import count
from logging import getLogger
from typing import Protocol

from diagram.types import DiagramSet
from reconcile.main import (
    build_render_model,
    commit_for_save,
    fill_missing_positions,
    resolve,
    save_to_file,
)
from reconcile.placement import circular_positions
from reconcile.types import Position, PositionGenerator, RenderModel
from schema.errors import ParseWarning
from schema.types import Schema

from filesync.main import list_diagrams, load, refresh

logger = getLogger(__name__)


class FileState(StrEnum):
    """Where the controller is in the load, edit and save cycle."""

    UNLOADED = auto()
    LOADED = auto()
    DIRTY = auto()  # In-memory layout differs from the file
    SAVING = auto()


class FileIO(Protocol):
    """Reads and writes the full text of one file."""

    async def open_file(self) -> str:
        """Return the current file text."""
        ...

    async def write_file(self, text: str) -> bool:
        """Replace the file text, returning False if the write did not happen."""
        ...


class IOFailure(Exception):
    """The file could not be read or written."""


class ControllerBusyError(RuntimeError):
    """Another load, refresh or save is still running."""


class FileSyncController:
    """Keep one schema file, its diagrams and the canvas in step."""

    def __init__(
        self,
        io: FileIO,
        *,
        generator: PositionGenerator = circular_positions,
    ) -> None:
        self.io = io
        self.generator = generator
        self.state = FileState.UNLOADED
        self.text = ""
        self.schema = Schema()
        self.diagrams: DiagramSet = {}
        self.active: str | None = None
        self.positions: dict[str, Position] = {}
        self.render_model = RenderModel()
        self.warnings: list[ParseWarning] = []
        self._requests = count(1)
        self._latest = 0
        self._busy = False

    @property
    def diagram_names(self) -> list[str]:
        """Names of the diagrams in the loaded file."""
        return list_diagrams(self.diagrams)

    def _set_state(self, state: FileState) -> None:
        if state is not self.state:
            logger.debug("File state %s -> %s", self.state, state)
        self.state = state

    def _next_request(self) -> int:
        self._latest = next(self._requests)
        return self._latest

    def _is_stale(self, request: int, action: str) -> bool:
        if request != self._latest:
            logger.info("Discarding %s result superseded by a newer request", action)
            return True
        return False

    @contextmanager
    def _exclusive(self, action: str) -> Iterator[None]:
        if self._busy:
            msg = f"Cannot {action} while another load, refresh or save is running"
            raise ControllerBusyError(msg)
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    def _require_loaded(self, action: str) -> str:
        if self.state is FileState.UNLOADED or self.active is None:
            msg = f"Cannot {action} before a file is loaded"
            raise RuntimeError(msg)
        return self.active

    async def _open(self) -> str:
        try:
            return await self.io.open_file()
        except OSError as err:
            logger.exception("Failed to read file")
            msg = f"Failed to read file: {err}"
            raise IOFailure(msg) from err

    def _show(self, render_model: RenderModel) -> RenderModel:
        self.render_model = render_model
        self.positions = render_model.positions()
        return render_model

    def _committed(self) -> DiagramSet:
        """Diagram set with the live positions written into the active diagram."""
        if self.active is None:
            return dict(self.diagrams)
        return commit_for_save(self.diagrams, self.active, self.positions)

    async def load(self) -> RenderModel | None:
        """Read the file and show its first diagram.

        Returns None when a newer request superseded this one. Raises
        StructuralError when the file has nothing to draw, leaving the
        controller as it was.
        """
        with self._exclusive("load"):
            request = self._next_request()
            text = await self._open()
            if self._is_stale(request, "load"):
                return None
            result = load(text)
            self.text = text
            self.schema = result.schema
            self.diagrams = result.diagrams
            self.warnings = result.warnings
            self.active = next(iter(result.diagrams))
            render_model = self._show(
                resolve(self.active, self.schema, self.diagrams, self.generator),
            )
            logger.info(
                "Loaded %d tables and %d diagrams with %d warnings",
                len(self.schema),
                len(self.diagrams),
                len(self.warnings),
            )
            self._set_state(FileState.LOADED)
            return render_model

    def select(self, diagram_name: str) -> RenderModel:
        """Switch the canvas to another diagram, keeping edits to the current one."""
        self._require_loaded("select a diagram")
        if diagram_name not in self.diagrams:
            msg = f"Unknown diagram: {diagram_name}"
            raise ValueError(msg)
        self._next_request()
        if self.state in (FileState.DIRTY, FileState.SAVING):
            self.diagrams = self._committed()
        self.active = diagram_name
        return self._show(resolve(diagram_name, self.schema, self.diagrams, self.generator))

    def move(self, qualified_name: str, x: float, y: float) -> RenderModel:
        """Record a table dragged to a new position on the canvas."""
        self._require_loaded("move a table")
        if qualified_name not in self.positions:
            msg = f"Table is not on the current diagram: {qualified_name}"
            raise ValueError(msg)
        self._next_request()
        self.positions[qualified_name] = Position(x, y)
        self.render_model = build_render_model(self.schema, self.positions)
        if self.state is not FileState.SAVING:
            self._set_state(FileState.DIRTY)
        return self.render_model

    async def refresh(self) -> RenderModel | None:
        """Re-read the SQL from disk and reconcile the active diagram with it.

        The layout block on disk is not re-read; the in-memory diagrams win.
        Returns None when a newer request superseded this one.
        """
        active = self._require_loaded("refresh")
        with self._exclusive("refresh"):
            request = self._next_request()
            text = await self._open()
            if self._is_stale(request, "refresh"):
                return None
            previous = self._committed()
            result = refresh(active, text, previous, self.generator)
            self.text = text
            self.schema = result.schema
            self.warnings = result.warnings
            self.diagrams = result.diagrams
            render_model = self._show(result.render_model)
            if result.diagrams != previous:
                self._set_state(FileState.DIRTY)
            logger.info("Refreshed %d tables on diagram %s", len(render_model.nodes), active)
            return render_model

    async def save(self) -> str:
        """Write the current layout back into the file.

        Returns the text written. Raises IOFailure and leaves the state dirty
        when the write fails. If a table was moved while the write was in
        flight, the file is saved but the state stays dirty.
        """
        self._require_loaded("save")
        with self._exclusive("save"):
            request = self._next_request()
            diagrams = fill_missing_positions(self._committed(), self.generator)
            new_text = save_to_file(self.text, diagrams)
            self._set_state(FileState.SAVING)
            try:
                written = await self.io.write_file(new_text)
            except OSError as err:
                self._set_state(FileState.DIRTY)
                logger.exception("Failed to write file")
                msg = f"Failed to write file: {err}"
                raise IOFailure(msg) from err
            if not written:
                self._set_state(FileState.DIRTY)
                msg = "Failed to write file"
                raise IOFailure(msg)

            self.text = new_text
            if self._is_stale(request, "save"):
                # Edits made during the write stay in memory
                self._set_state(FileState.DIRTY)
            else:
                self.diagrams = diagrams
                self._set_state(FileState.LOADED)
            logger.info("Saved %d diagrams", len(diagrams))
            return new_text

