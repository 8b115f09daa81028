"""Shared dataclasses describing schema graphs and query results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

RawRow = Mapping[str, Any]


class TableType(str, Enum):
    """Kind of relation exposed in the schema graph."""

    TABLE = "table"


class KeyType(str, Enum):
    """Kind of constraint attached to a table."""

    PRIMARY_KEY = "primary_key"
    FOREIGN_KEY = "foreign_key"

    @classmethod
    def from_code(cls, code: str | bytes | None) -> "KeyType":
        """Map a single-character catalog code onto a key type."""

        if isinstance(code, bytes):
            code = code.decode()
        return cls.PRIMARY_KEY if code == "p" else cls.FOREIGN_KEY


@dataclass(frozen=True, slots=True)
class Column:
    """Column name as displayed plus its declared type name."""

    name: str
    type: str


@dataclass(frozen=True, slots=True)
class Key:
    """Constraint attached to a table."""

    name: str
    type: KeyType


@dataclass(frozen=True, slots=True)
class Table:
    """A relation with its ordered columns and keys."""

    name: str
    type: TableType = TableType.TABLE
    columns: tuple[Column, ...] = ()
    keys: tuple[Key, ...] = ()

    def as_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "type": self.type.value,
            "columns": [{"name": column.name, "type": column.type} for column in self.columns],
            "keys": [{"name": key.name, "type": key.type.value} for key in self.keys],
        }


@dataclass(frozen=True, slots=True)
class SchemaGraph:
    """Tables in first-seen catalog order."""

    tables: tuple[Table, ...] = ()

    def table(self, name: str) -> Table | None:
        """Return the table with the given name, if present."""

        for entry in self.tables:
            if entry.name == name:
                return entry
        return None

    def as_dict(self) -> dict[str, object]:
        return {"tables": [table.as_dict() for table in self.tables]}


@dataclass(frozen=True, slots=True)
class DatasourceMetadata:
    """Result of the metadata operation handed back to the host."""

    db_schema: SchemaGraph

    def as_dict(self) -> dict[str, object]:
        return {"dbSchema": self.db_schema.as_dict()}


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Raw statement output before column names are normalized."""

    columns: tuple[str, ...]
    rows: tuple[RawRow, ...]
    row_count: int


@dataclass(slots=True)
class ExecutionOutput:
    """Rows returned to the host after a user query."""

    output: list[dict[str, Any]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.output)


__all__ = [
    "Column",
    "DatasourceMetadata",
    "ExecutionOutput",
    "Key",
    "KeyType",
    "QueryResult",
    "RawRow",
    "SchemaGraph",
    "Table",
    "TableType",
]
