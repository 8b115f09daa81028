"""Inbound operations the host framework calls on the Postgres connector."""

from __future__ import annotations

import logging
from typing import Any, Sequence

import asyncpg

from .config import ActionConfig, ConnectorSettings, DatasourceConfig
from .connections import ConnectionManager
from .errors import DatasourceConnectionError, IntrospectionError, QueryExecutionError
from .models import DatasourceMetadata, ExecutionOutput
from .query import execute_user_query, run_statement
from .schema import introspect

LOG = logging.getLogger(__name__)

LIVENESS_QUERY = "SELECT NOW()"


class PostgresConnector:
    """Runs user SQL and schema introspection, one connection per call."""

    def __init__(
        self,
        settings: ConnectorSettings | None = None,
        *,
        manager: ConnectionManager | None = None,
    ) -> None:
        self._settings = settings or ConnectorSettings()
        self._manager = manager or ConnectionManager(connect_timeout_ms=self._settings.connect_timeout_ms)

    @property
    def settings(self) -> ConnectorSettings:
        return self._settings

    async def test(self, config: DatasourceConfig | None) -> None:
        """Open a short-timeout connection and run a liveness statement."""

        try:
            async with self._manager.session(config, self._settings.test_timeout_ms) as session:
                async with session.executing() as connection:
                    await run_statement(connection, LIVENESS_QUERY)
        except (DatasourceConnectionError, QueryExecutionError) as exc:
            raise DatasourceConnectionError(f"Test Postgres connection failed, {exc}") from exc

    async def metadata(self, config: DatasourceConfig | None) -> DatasourceMetadata:
        """Introspect tables, columns and keys of the configured database."""

        async with self._manager.session(config) as session:
            async with session.executing() as connection:
                try:
                    graph = await introspect(connection)
                except IntrospectionError as exc:
                    raise IntrospectionError(f"Failed to fetch Postgres metadata, {exc}") from exc
        return DatasourceMetadata(db_schema=graph)

    async def execute(
        self,
        config: DatasourceConfig | None,
        action: ActionConfig,
        params: Sequence[Any] | None = None,
    ) -> ExecutionOutput:
        """Open a connection, run the action's SQL, and close the connection."""

        async with self._manager.session(config) as session:
            async with session.executing() as connection:
                return await self._execute(connection, action, params)

    async def execute_pooled(
        self,
        connection: asyncpg.Connection,
        action: ActionConfig,
        params: Sequence[Any] | None = None,
    ) -> ExecutionOutput:
        """Run the action's SQL on a connection owned by an external pool."""

        return await self._execute(connection, action, params)

    def get_request(self, action: ActionConfig | None) -> str | None:
        """Raw request shown to the user for an action."""

        return action.body if action is not None else None

    def dynamic_properties(self) -> tuple[str, ...]:
        """Action fields the host may resolve as templates before execution."""

        return ("body",)

    async def _execute(
        self,
        connection: asyncpg.Connection,
        action: ActionConfig,
        params: Sequence[Any] | None,
    ) -> ExecutionOutput:
        try:
            return await execute_user_query(connection, action.body, params)
        except QueryExecutionError as exc:
            LOG.debug("Postgres query failed", extra={"error": str(exc)})
            raise QueryExecutionError(f"Postgres query failed, {exc}") from exc


__all__ = ["LIVENESS_QUERY", "PostgresConnector"]
