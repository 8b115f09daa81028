"""Schema introspection: fold catalog rows into a SchemaGraph."""

from __future__ import annotations

import logging
from typing import Iterable

import asyncpg

from .errors import IntrospectionError
from .models import Column, Key, KeyType, RawRow, SchemaGraph, Table, TableType

LOG = logging.getLogger(__name__)

TABLE_QUERY = (
    "select a.attname as name,"
    "       t1.typname as column_type,"
    "       case when a.atthasdef then pg_get_expr(d.adbin, d.adrelid) end as default_expr,"
    "       c.relkind as kind,"
    "       c.relname as table_name,"
    "       n.nspname as schema_name "
    "from pg_catalog.pg_attribute a "
    "         left join pg_catalog.pg_type t1 on t1.oid = a.atttypid "
    "         inner join pg_catalog.pg_class c on a.attrelid = c.oid "
    "         left join pg_catalog.pg_namespace n on c.relnamespace = n.oid "
    "         left join pg_catalog.pg_attrdef d on d.adrelid = c.oid and d.adnum = a.attnum "
    "where a.attnum > 0 "
    "  and not a.attisdropped "
    "  and n.nspname not in ('information_schema', 'pg_catalog') "
    "  and c.relkind in ('r', 'v') "
    "  and pg_catalog.pg_table_is_visible(a.attrelid) "
    "order by c.relname, a.attnum;"
)

KEYS_QUERY = (
    "select c.conname as constraint_name,"
    "       c.contype as constraint_type,"
    "       sch.nspname as self_schema,"
    "       tbl.relname as self_table,"
    "       array_agg(col.attname order by u.attposition)     as self_columns,"
    "       f_sch.nspname                                     as foreign_schema,"
    "       f_tbl.relname                                     as foreign_table,"
    "       array_agg(f_col.attname order by f_u.attposition) as foreign_columns,"
    "       pg_get_constraintdef(c.oid)                       as definition"
    " from pg_constraint c "
    "         left join lateral unnest(c.conkey) with ordinality as u(attnum, attposition) on true "
    "         left join lateral unnest(c.confkey) with ordinality as f_u(attnum, attposition) "
    "                   on f_u.attposition = u.attposition "
    "         join pg_class tbl on tbl.oid = c.conrelid "
    "         join pg_namespace sch on sch.oid = tbl.relnamespace "
    "         left join pg_attribute col on (col.attrelid = tbl.oid and col.attnum = u.attnum) "
    "         left join pg_class f_tbl on f_tbl.oid = c.confrelid "
    "         left join pg_namespace f_sch on f_sch.oid = f_tbl.relnamespace "
    "         left join pg_attribute f_col on (f_col.attrelid = f_tbl.oid and f_col.attnum = f_u.attnum) "
    "group by constraint_name, constraint_type, self_schema, self_table, definition, foreign_schema, foreign_table "
    "order by self_schema, self_table"
)


class SchemaBuilder:
    """Accumulates tables while catalog rows stream in.

    Tables are keyed by name in insertion order, so the finished graph lists
    them in the order the column catalog first mentioned them.
    """

    def __init__(self) -> None:
        self._columns: dict[str, list[Column]] = {}
        self._keys: dict[str, list[Key]] = {}

    def add_columns(self, rows: Iterable[RawRow]) -> None:
        for row in rows:
            table_name = str(row["table_name"])
            columns = self._columns.setdefault(table_name, [])
            self._keys.setdefault(table_name, [])
            columns.append(Column(display_name(str(row["name"])), row["column_type"] or ""))

    def add_keys(self, rows: Iterable[RawRow]) -> None:
        for row in rows:
            keys = self._keys.get(str(row["self_table"]))
            if keys is None:
                # Constraint on a relation the column catalog filtered out.
                continue
            keys.append(Key(str(row["constraint_name"]), KeyType.from_code(row["constraint_type"])))

    def build(self) -> SchemaGraph:
        return SchemaGraph(
            tables=tuple(
                Table(
                    name=name,
                    type=TableType.TABLE,
                    columns=tuple(columns),
                    keys=tuple(self._keys[name]),
                )
                for name, columns in self._columns.items()
            )
        )


def display_name(column: str) -> str:
    """Quote ``column`` unless it is entirely lowercase."""

    if column == column.lower():
        return column
    return f'"{column}"'


def fold_schema(table_rows: Iterable[RawRow], key_rows: Iterable[RawRow]) -> SchemaGraph:
    """Fold column-catalog and constraint-catalog rows into a SchemaGraph."""

    builder = SchemaBuilder()
    builder.add_columns(table_rows)
    builder.add_keys(key_rows)
    return builder.build()


async def introspect(connection: asyncpg.Connection) -> SchemaGraph:
    """Run both catalog queries in sequence and fold their rows."""

    builder = SchemaBuilder()
    try:
        table_rows = await connection.fetch(TABLE_QUERY)
        builder.add_columns(table_rows)
        key_rows = await connection.fetch(KEYS_QUERY)
        builder.add_keys(key_rows)
    except Exception as exc:
        raise IntrospectionError(str(exc)) from exc
    graph = builder.build()
    LOG.debug("Introspected Postgres schema", extra={"tables": len(graph.tables)})
    return graph


__all__ = [
    "KEYS_QUERY",
    "SchemaBuilder",
    "TABLE_QUERY",
    "display_name",
    "fold_schema",
    "introspect",
]
