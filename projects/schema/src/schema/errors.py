"""Warning and error types shared by the schema and diagram parsers."""

from enum import StrEnum, auto
from typing import NamedTuple


class WarningKind(StrEnum):
    """Category of a non-fatal parse problem."""

    SYNTAX = auto()  # Statement or line skipped
    RESOLUTION = auto()  # Single reference dropped


class ParseWarning(NamedTuple):
    """A problem found while parsing that did not stop the parse."""

    kind: WarningKind
    message: str
    line: int | None = None

    def __str__(self) -> str:
        """Render as a single human readable line."""
        where = f"line {self.line}: " if self.line is not None else ""
        return f"{where}{self.message}"


class ResolutionError(Exception):
    """A reference could not be resolved; only that reference is dropped."""


class StructuralError(Exception):
    """Input has nothing usable to render."""
