"""Immutable records for a schema parsed from SQL."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import NamedTuple


class Column(NamedTuple):
    """A column in declaration order."""

    name: str
    type: str  # Raw type text, e.g. "varchar(255)"
    nullable: bool = True
    has_default: bool = False


class ForeignKey(NamedTuple):
    """A single resolved column reference between two tables."""

    source_table: str
    source_column: str
    target_table: str
    target_column: str


class Table(NamedTuple):
    """A table created by one CREATE TABLE statement."""

    schema: str
    name: str
    columns: tuple[Column, ...]
    primary_key: tuple[str, ...] = ()  # Unique names, declaration order

    @property
    def qualified_name(self) -> str:
        """Return the ``schema.table`` name."""
        return qualify(self.schema, self.name)

    def column(self, name: str) -> Column | None:
        """Return the column called ``name`` if the table has one."""
        return next((column for column in self.columns if column.name == name), None)


@dataclass(frozen=True)
class Schema:
    """All tables and foreign keys found in one parse pass."""

    tables: Mapping[str, Table] = field(default_factory=dict)
    foreign_keys: tuple[ForeignKey, ...] = ()

    def __iter__(self) -> Iterator[Table]:
        return iter(self.tables.values())

    def __len__(self) -> int:
        return len(self.tables)

    def __contains__(self, qualified_name: object) -> bool:
        return qualified_name in self.tables

    def schemas(self) -> list[str]:
        """Schema names in the order they were first seen."""
        return list(dict.fromkeys(table.schema for table in self))

    def tables_in(self, schema_name: str) -> list[str]:
        """Qualified names of every table in ``schema_name``."""
        return [table.qualified_name for table in self if table.schema == schema_name]


def qualify(schema_name: str, table_name: str) -> str:
    """Join schema and table into a qualified name."""
    return f"{schema_name}.{table_name}"
