"""Keep a schema file and its diagram layouts in sync."""

from filesync.controller import (
    ControllerBusyError,
    FileIO,
    FileState,
    FileSyncController,
    IOFailure,
)
from filesync.files import PathFileIO
from filesync.main import (
    DEFAULT_DIAGRAM,
    LoadResult,
    RefreshResult,
    default_diagrams,
    list_diagrams,
    load,
    parse_schema,
    prepare_diagrams,
    prepare_save,
    refresh,
)
from filesync.settings import LayoutSettings, load_settings, settings_generator
from reconcile.main import resolve

__all__ = [
    "DEFAULT_DIAGRAM",
    "ControllerBusyError",
    "FileIO",
    "FileState",
    "FileSyncController",
    "IOFailure",
    "LayoutSettings",
    "LoadResult",
    "PathFileIO",
    "RefreshResult",
    "default_diagrams",
    "list_diagrams",
    "load",
    "load_settings",
    "parse_schema",
    "prepare_diagrams",
    "prepare_save",
    "refresh",
    "resolve",
    "settings_generator",
]
