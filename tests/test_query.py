"""Tests for statement execution helpers."""

from __future__ import annotations

import pytest

from psqlconnector.errors import QueryExecutionError
from psqlconnector.query import execute_user_query, run_statement

from .conftest import FakeConnection


@pytest.mark.anyio
async def test_run_statement_passes_sql_and_params_through() -> None:
    rows = [
        {"id": 1, "email": "alice@example.com"},
        {"id": 2, "email": "bob@example.com"},
    ]
    connection = FakeConnection(rows=rows)

    result = await run_statement(connection, "SELECT * FROM accounts WHERE id > $1", [0])  # type: ignore[arg-type]

    assert connection.fetch_calls == [("SELECT * FROM accounts WHERE id > $1", (0,))]
    assert result.columns == ("id", "email")
    assert result.row_count == 2
    assert result.rows == tuple(rows)


@pytest.mark.anyio
async def test_run_statement_reports_columns_without_rows() -> None:
    connection = FakeConnection(rows=[], columns=("id", "email"))

    result = await run_statement(connection, "SELECT id, email FROM accounts WHERE false")  # type: ignore[arg-type]

    assert connection.prepare_calls == ["SELECT id, email FROM accounts WHERE false"]
    assert result.columns == ("id", "email")
    assert result.rows == ()
    assert result.row_count == 0


@pytest.mark.anyio
async def test_run_statement_handles_statements_without_result_columns() -> None:
    connection = FakeConnection(rows=[])

    result = await run_statement(connection, "DELETE FROM accounts")  # type: ignore[arg-type]

    assert result.columns == ()
    assert result.row_count == 0


@pytest.mark.anyio
async def test_run_statement_wraps_driver_errors() -> None:
    connection = FakeConnection(error=RuntimeError('syntax error at or near "SELEC"'))

    with pytest.raises(QueryExecutionError, match="syntax error"):
        await run_statement(connection, "SELEC 1")  # type: ignore[arg-type]


@pytest.mark.anyio
@pytest.mark.parametrize("sql", ["", "   ", "\n\t", None])
async def test_execute_user_query_skips_blank_sql(sql: str | None) -> None:
    connection = FakeConnection(rows=[{"id": 1}])

    output = await execute_user_query(connection, sql)  # type: ignore[arg-type]

    assert output.output == []
    assert connection.fetch_calls == []


@pytest.mark.anyio
async def test_execute_user_query_returns_normalized_rows() -> None:
    connection = FakeConnection(rows=[{"id": 1, "total": 9.5}])

    output = await execute_user_query(connection, "SELECT id, total FROM orders")  # type: ignore[arg-type]

    assert output.output == [{"id": 1, "total": 9.5}]
    assert output.row_count == 1
