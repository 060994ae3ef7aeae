"""Tests for the on-disk file collaborator."""

import asyncio
from pathlib import Path

from filesync.controller import FileState, FileSyncController
from filesync.files import PathFileIO


def test_line_endings_survive_a_round_trip(tmp_path: Path) -> None:
    """Bytes outside the block are written back unchanged."""
    path = tmp_path / "schema.sql"
    path.write_bytes("-- naïve\r\nCREATE TABLE public.t (id int);\r\n".encode())
    io = PathFileIO(path)

    text = asyncio.run(io.open_file())
    assert text == "-- naïve\r\nCREATE TABLE public.t (id int);\r\n"
    assert asyncio.run(io.write_file(text + "-- done\n"))
    assert path.read_bytes() == (text + "-- done\n").encode()


def test_controller_saves_to_disk(tmp_path: Path) -> None:
    """A load and save through the controller writes a block into the file."""
    path = tmp_path / "schema.sql"
    sql = "CREATE TABLE public.t (id int);\r\n"
    path.write_bytes(sql.encode())
    controller = FileSyncController(PathFileIO(path))

    asyncio.run(controller.load())
    controller.move("public.t", 12, 34)
    asyncio.run(controller.save())

    saved = path.read_bytes().decode()
    assert saved == "/* @erd-pets\n[main]\npublic.*\npublic.t 12 34\n*/\n\n" + sql
    assert controller.state is FileState.LOADED
