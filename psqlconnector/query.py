"""Statement execution against an open connection."""

from __future__ import annotations

from typing import Any, Sequence

import asyncpg

from .errors import QueryExecutionError
from .models import ExecutionOutput, QueryResult
from .normalize import normalize_column_names


async def run_statement(
    connection: asyncpg.Connection,
    sql: str,
    params: Sequence[Any] | None = None,
) -> QueryResult:
    """Run ``sql`` verbatim with optional positional parameters.

    Column names come from the prepared statement, so they are known even
    when no rows are returned. Any driver failure is re-raised as
    ``QueryExecutionError`` carrying the driver message; the connection
    should be closed afterwards.
    """

    try:
        statement = await connection.prepare(sql)
        records = await statement.fetch(*(params or ()))
        columns = tuple(str(attribute.name) for attribute in statement.get_attributes())
    except Exception as exc:
        raise QueryExecutionError(str(exc)) from exc
    rows = tuple(records)
    return QueryResult(columns=columns, rows=rows, row_count=len(rows))


async def execute_user_query(
    connection: asyncpg.Connection,
    sql: str | None,
    params: Sequence[Any] | None = None,
) -> ExecutionOutput:
    """Run a host-supplied query; blank SQL yields an empty output."""

    ret = ExecutionOutput()
    if not sql or not sql.strip():
        return ret
    result = await run_statement(connection, sql, params)
    ret.output = normalize_column_names(result.rows)
    return ret


__all__ = ["execute_user_query", "run_statement"]
