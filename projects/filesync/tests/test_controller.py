"""Tests for the stateful file controller."""

import asyncio
from collections.abc import Awaitable, Callable

import pytest

from diagram.main import parse_block
from filesync.controller import (
    ControllerBusyError,
    FileState,
    FileSyncController,
    IOFailure,
)
from reconcile.types import Position
from schema.errors import StructuralError

SQL = """/* @erd-pets
[main]
public.users 10 10
public.posts 300 10

[solo]
public.users 0 0
*/
CREATE TABLE public.users (id integer);
CREATE TABLE public.posts (id integer, user_id integer);
ALTER TABLE public.posts ADD FOREIGN KEY (user_id) REFERENCES public.users (id);
"""

type Hook = Callable[[], Awaitable[None]]


class MemoryFile:
    """In-memory file with hooks that run while a read or write is pending."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.writes: list[str] = []
        self.on_open: Hook | None = None
        self.on_write: Hook | None = None
        self.fail_open = False
        self.fail_write = False
        self.refuse_write = False

    async def open_file(self) -> str:
        """Return the stored text."""
        if self.on_open is not None:
            await self.on_open()
        if self.fail_open:
            msg = "permission denied"
            raise OSError(msg)
        return self.text

    async def write_file(self, text: str) -> bool:
        """Store ``text`` unless told to fail."""
        if self.on_write is not None:
            await self.on_write()
        if self.fail_write:
            msg = "disk full"
            raise OSError(msg)
        if self.refuse_write:
            return False
        self.text = text
        self.writes.append(text)
        return True


@pytest.fixture(name="file")
def create_file() -> MemoryFile:
    """A file with two diagrams."""
    return MemoryFile(SQL)


@pytest.fixture(name="controller")
def create_controller(file: MemoryFile) -> FileSyncController:
    """A controller that has already loaded ``file``."""
    controller = FileSyncController(file)
    asyncio.run(controller.load())
    return controller


def test_load_shows_first_diagram(controller: FileSyncController) -> None:
    """The first diagram in the file is active after loading."""
    assert controller.state is FileState.LOADED
    assert controller.active == "main"
    assert controller.diagram_names == ["main", "solo"]
    assert controller.positions == {
        "public.users": Position(10, 10),
        "public.posts": Position(300, 10),
    }
    assert len(controller.render_model.edges) == 1


def test_move_marks_dirty(controller: FileSyncController) -> None:
    """Dragging a table is an unsaved change."""
    model = controller.move("public.users", 50, 60)
    assert controller.state is FileState.DIRTY
    assert dict(model.positions())["public.users"] == Position(50, 60)


def test_move_unknown_table(controller: FileSyncController) -> None:
    """Only tables on the active diagram can be moved."""
    with pytest.raises(ValueError, match="not on the current diagram"):
        controller.move("public.nope", 0, 0)


def test_save_writes_moves_and_cleans_state(
    controller: FileSyncController,
    file: MemoryFile,
) -> None:
    """A save stores live positions and returns to the loaded state."""
    controller.move("public.users", 50, 60)
    written = asyncio.run(controller.save())
    assert controller.state is FileState.LOADED
    assert file.text == written
    assert "public.users 50 60" in written
    assert written.endswith("*/\n" + SQL.split("*/\n", 1)[1])


def test_select_keeps_unsaved_moves(controller: FileSyncController) -> None:
    """Switching diagrams and back does not lose a drag."""
    controller.move("public.users", 50, 60)
    solo = controller.select("solo")
    assert solo.positions() == {"public.users": Position(0, 0)}
    back = controller.select("main")
    assert back.positions()["public.users"] == Position(50, 60)
    assert controller.state is FileState.DIRTY


def test_select_unknown_diagram(controller: FileSyncController) -> None:
    """Selecting a diagram that does not exist is rejected."""
    with pytest.raises(ValueError, match="Unknown diagram: nope"):
        controller.select("nope")


def test_refresh_picks_up_sql_changes(
    controller: FileSyncController,
    file: MemoryFile,
) -> None:
    """New tables appear, removed tables vanish, stored positions stay."""
    file.text = SQL.replace(
        "CREATE TABLE public.posts (id integer, user_id integer);",
        "CREATE TABLE public.tags (id integer);",
    )
    controller.move("public.users", 70, 80)
    model = asyncio.run(controller.refresh())
    assert model is not None
    positions = model.positions()
    assert set(positions) == {"public.users"}
    assert positions["public.users"] == Position(70, 80)
    assert model.edges == ()
    assert controller.state is FileState.DIRTY


def test_refresh_ignores_block_on_disk(
    controller: FileSyncController,
    file: MemoryFile,
) -> None:
    """The in-memory diagrams win over a block edited on disk."""
    file.text = SQL.replace("public.users 10 10", "public.users 999 999")
    model = asyncio.run(controller.refresh())
    assert model is not None
    assert model.positions()["public.users"] == Position(10, 10)


def test_refresh_superseded_by_move_is_discarded(
    controller: FileSyncController,
    file: MemoryFile,
) -> None:
    """A drag during a refresh wins over the refresh result."""
    file.text = SQL.replace("public.posts 300 10", "")

    async def drag() -> None:
        controller.move("public.posts", 1, 2)

    file.on_open = drag
    assert asyncio.run(controller.refresh()) is None
    assert controller.positions["public.posts"] == Position(1, 2)
    assert controller.state is FileState.DIRTY


def test_concurrent_operations_are_rejected(
    controller: FileSyncController,
    file: MemoryFile,
) -> None:
    """A save cannot start while a refresh is waiting on the file."""

    async def try_save() -> None:
        with pytest.raises(ControllerBusyError):
            await controller.save()

    file.on_open = try_save
    asyncio.run(controller.refresh())
    assert file.writes == []


def test_save_superseded_by_move_stays_dirty(
    controller: FileSyncController,
    file: MemoryFile,
) -> None:
    """A drag during a save keeps the file marked as changed."""

    async def drag() -> None:
        assert controller.state is FileState.SAVING
        controller.move("public.posts", 5, 5)

    file.on_write = drag
    written = asyncio.run(controller.save())
    assert file.text == written
    assert "public.posts 300 10" in written
    assert controller.state is FileState.DIRTY
    assert controller.positions["public.posts"] == Position(5, 5)


def test_drag_then_switch_during_save_is_kept(
    controller: FileSyncController,
    file: MemoryFile,
) -> None:
    """A drag followed by a diagram switch while writing survives the save."""

    async def drag_and_switch() -> None:
        controller.move("public.posts", 555, 555)
        controller.select("solo")

    file.on_write = drag_and_switch
    asyncio.run(controller.save())
    assert controller.state is FileState.DIRTY
    assert controller.active == "solo"

    back = controller.select("main")
    assert back.positions()["public.posts"] == Position(555, 555)

    file.on_write = None
    written = asyncio.run(controller.save())
    assert "public.posts 555 555" in written
    assert controller.state is FileState.LOADED


def test_failed_write_keeps_changes(
    controller: FileSyncController,
    file: MemoryFile,
) -> None:
    """Errors from the host surface as IOFailure and nothing is lost."""
    controller.move("public.users", 1, 1)
    file.fail_write = True
    with pytest.raises(IOFailure, match="disk full"):
        asyncio.run(controller.save())
    assert controller.state is FileState.DIRTY
    assert file.text == SQL
    assert controller.positions["public.users"] == Position(1, 1)


def test_refused_write_is_a_failure(
    controller: FileSyncController,
    file: MemoryFile,
) -> None:
    """A write reported as unsuccessful is treated as a failure."""
    file.refuse_write = True
    with pytest.raises(IOFailure):
        asyncio.run(controller.save())
    assert controller.state is FileState.DIRTY


def test_failed_read_leaves_controller_unloaded(file: MemoryFile) -> None:
    """A file that cannot be read is never half loaded."""
    file.fail_open = True
    controller = FileSyncController(file)
    with pytest.raises(IOFailure, match="permission denied"):
        asyncio.run(controller.load())
    assert controller.state is FileState.UNLOADED


def test_structural_error_on_load() -> None:
    """A file without tables cannot be loaded."""
    controller = FileSyncController(MemoryFile("SELECT 1;"))
    with pytest.raises(StructuralError):
        asyncio.run(controller.load())
    assert controller.state is FileState.UNLOADED


def test_operations_need_a_loaded_file(file: MemoryFile) -> None:
    """Refresh, save and edits are rejected before the first load."""
    controller = FileSyncController(file)
    with pytest.raises(RuntimeError, match="before a file is loaded"):
        asyncio.run(controller.save())
    with pytest.raises(RuntimeError, match="before a file is loaded"):
        controller.move("public.users", 0, 0)


def test_save_without_block_adds_default_layout() -> None:
    """A plain SQL file gets a block with every table placed."""
    sql = "CREATE TABLE public.a (id int);\nCREATE TABLE public.b (id int);\n"
    file = MemoryFile(sql)
    controller = FileSyncController(file)
    model = asyncio.run(controller.load())
    assert model is not None
    written = asyncio.run(controller.save())
    diagrams, warnings = parse_block(written)
    assert warnings == []
    assert diagrams is not None
    assert list(diagrams) == ["main"]
    assert written.endswith("*/\n\n" + sql)
    assert controller.state is FileState.LOADED
