"""Shared fakes standing in for asyncpg connections."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Callable, Mapping, Sequence

import pytest

from psqlconnector.config import Authentication, DatasourceConfig, Endpoint


class FakeStatement:
    """Prepared statement handed out by FakeConnection.prepare()."""

    def __init__(self, connection: "FakeConnection", sql: str) -> None:
        self._connection = connection
        self._sql = sql

    async def fetch(self, *args: Any) -> list[Any]:
        return await self._connection.fetch(self._sql, *args)

    def get_attributes(self) -> tuple[SimpleNamespace, ...]:
        names = self._connection.columns
        if names is None:
            rows = self._connection.responses.get(self._sql, self._connection.rows)
            names = tuple(rows[0].keys()) if rows else ()
        return tuple(SimpleNamespace(name=name) for name in names)


class FakeConnection:
    """Records statements and close calls; answers fetch() from canned rows."""

    def __init__(
        self,
        rows: Sequence[Any] | None = None,
        *,
        responses: Mapping[str, Sequence[Any]] | None = None,
        columns: Sequence[str] | None = None,
        error: Exception | None = None,
        close_error: Exception | None = None,
    ) -> None:
        self.rows = list(rows or [])
        self.responses = dict(responses or {})
        self.columns = tuple(columns) if columns is not None else None
        self.prepare_calls: list[str] = []
        self.error = error
        self.close_error = close_error
        self.fetch_calls: list[tuple[str, tuple[Any, ...]]] = []
        self.close_calls = 0
        self.query_loggers: list[Callable[..., None]] = []
        self.termination_listeners: list[Callable[..., None]] = []
        self.log_listeners: list[Callable[..., None]] = []
        self.channel_listeners: dict[str, Callable[..., None]] = {}

    async def fetch(self, sql: str, *args: Any) -> list[Any]:
        self.fetch_calls.append((sql, args))
        if self.error is not None:
            raise self.error
        if sql in self.responses:
            return list(self.responses[sql])
        return list(self.rows)

    async def prepare(self, sql: str) -> FakeStatement:
        self.prepare_calls.append(sql)
        return FakeStatement(self, sql)

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error

    def add_query_logger(self, callback: Callable[..., None]) -> None:
        self.query_loggers.append(callback)

    def add_termination_listener(self, callback: Callable[..., None]) -> None:
        self.termination_listeners.append(callback)

    def add_log_listener(self, callback: Callable[..., None]) -> None:
        self.log_listeners.append(callback)

    async def add_listener(self, channel: str, callback: Callable[..., None]) -> None:
        self.channel_listeners[channel] = callback


class ConnectRecorder:
    """Replacement for ``asyncpg.connect`` that hands out one FakeConnection."""

    def __init__(self, connection: FakeConnection) -> None:
        self.connection = connection
        self.calls: list[dict[str, Any]] = []
        self.error: Exception | None = None

    async def __call__(self, **kwargs: Any) -> FakeConnection:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.connection


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def datasource() -> DatasourceConfig:
    return DatasourceConfig(
        endpoint=Endpoint(host="db.local", port=5432),
        authentication=Authentication(username="postgres", password="secret", database_name="app"),
    )


@pytest.fixture
def connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def fake_connect(monkeypatch: pytest.MonkeyPatch, connection: FakeConnection) -> ConnectRecorder:
    recorder = ConnectRecorder(connection)
    monkeypatch.setattr("psqlconnector.connections.asyncpg.connect", recorder)
    return recorder
