"""Connection lifecycle: open, listen, and release PostgreSQL connections."""

from __future__ import annotations

import logging
import ssl
import tempfile
from contextlib import ExitStack, asynccontextmanager, contextmanager
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Iterator

import asyncpg

from .config import DEFAULT_CONNECT_TIMEOUT_MS, ConnectionOptions, DatasourceConfig
from .errors import DatasourceConnectionError

LOG = logging.getLogger(__name__)

_PEM_MARKER = "-----BEGIN"


class ConnectionState(str, Enum):
    """Lifecycle of the connection held by one logical operation."""

    IDLE = "idle"
    OPENING = "opening"
    OPEN = "open"
    EXECUTING = "executing"
    CLOSING = "closing"
    CLOSED = "closed"


class ConnectionListeners:
    """Logging callbacks registered on every connection at open time.

    Each callback only logs, tagged with the ``host:port`` endpoint, so a
    driver event can never disturb the statement that is running.
    """

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint

    def on_error(self, record: asyncpg.connection.LoggedQuery) -> None:
        if record.exception is None:
            return
        LOG.error(
            "Postgres client error. %s %s",
            self.endpoint,
            record.exception,
            extra={"endpoint": self.endpoint},
        )

    def on_termination(self, _connection: asyncpg.Connection) -> None:
        LOG.debug("Postgres client disconnected from server. %s", self.endpoint, extra={"endpoint": self.endpoint})

    def on_notification(self, _connection: asyncpg.Connection, pid: int, channel: str, payload: object) -> None:
        LOG.debug(
            "Postgres notification %s on %s from pid %s. %s",
            payload,
            channel,
            pid,
            self.endpoint,
            extra={"endpoint": self.endpoint, "channel": channel},
        )

    def on_notice(self, _connection: asyncpg.Connection, message: asyncpg.PostgresLogMessage) -> None:
        LOG.debug("Postgres notice: %s. %s", message, self.endpoint, extra={"endpoint": self.endpoint})

    async def attach(self, connection: asyncpg.Connection, channels: tuple[str, ...] = ()) -> None:
        """Register all four listeners on ``connection``."""

        connection.add_query_logger(self.on_error)
        connection.add_termination_listener(self.on_termination)
        connection.add_log_listener(self.on_notice)
        for channel in channels:
            try:
                await connection.add_listener(channel, self.on_notification)
            except Exception as exc:
                LOG.warning(
                    "Could not listen on Postgres channel",
                    extra={"endpoint": self.endpoint, "channel": channel, "error": str(exc)},
                )


class ConnectionSession:
    """Exclusive hold on one connection for the span of a single operation."""

    def __init__(self) -> None:
        self._state = ConnectionState.IDLE
        self._connection: asyncpg.Connection | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connection(self) -> asyncpg.Connection:
        """The live connection; raises once the session left the open states."""

        if self._connection is None or self._state not in {ConnectionState.OPEN, ConnectionState.EXECUTING}:
            raise DatasourceConnectionError(f"Postgres connection is not open (state: {self._state.value})")
        return self._connection

    @asynccontextmanager
    async def executing(self) -> AsyncIterator[asyncpg.Connection]:
        """Mark the session busy while the caller runs statements."""

        connection = self.connection
        self._state = ConnectionState.EXECUTING
        try:
            yield connection
        finally:
            if self._state is ConnectionState.EXECUTING:
                self._state = ConnectionState.OPEN


class ConnectionManager:
    """Opens validated asyncpg connections and guarantees their release."""

    def __init__(self, *, connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS) -> None:
        self._connect_timeout_ms = connect_timeout_ms

    async def open(self, config: DatasourceConfig | None, timeout_ms: int | None = None) -> asyncpg.Connection:
        """Validate ``config`` and connect; raise ``DatasourceConnectionError`` on failure."""

        try:
            config = _validated(config)
            kwargs = self._connect_kwargs(config, timeout_ms)
            connection = await asyncpg.connect(**kwargs)
        except Exception as exc:
            raise DatasourceConnectionError(f"Failed to connect to Postgres, {exc}") from exc
        options = config.connection or ConnectionOptions()
        try:
            await ConnectionListeners(config.endpoint_label).attach(connection, options.listen_channels)
        except Exception as exc:
            await self._discard(connection, config.endpoint_label)
            raise DatasourceConnectionError(f"Failed to connect to Postgres, {exc}") from exc
        LOG.debug("Postgres client connected. %s", config.endpoint_label, extra={"endpoint": config.endpoint_label})
        return connection

    async def close(self, connection: asyncpg.Connection) -> None:
        """Close ``connection``; the caller must call this at most once."""

        try:
            await connection.close()
        except Exception as exc:
            raise DatasourceConnectionError(f"Failed to close Postgres connection, {exc}") from exc

    async def _discard(self, connection: asyncpg.Connection, endpoint: str) -> None:
        try:
            await self.close(connection)
        except DatasourceConnectionError:
            LOG.exception("Failed to close Postgres connection", extra={"endpoint": endpoint})

    @asynccontextmanager
    async def session(
        self,
        config: DatasourceConfig | None,
        timeout_ms: int | None = None,
    ) -> AsyncIterator[ConnectionSession]:
        """Open a connection, yield it, and close it on every exit path.

        A failure while closing is logged rather than raised so it never
        replaces the error raised by the body.
        """

        session = ConnectionSession()
        session._state = ConnectionState.OPENING
        try:
            connection = await self.open(config, timeout_ms)
        except DatasourceConnectionError:
            session._state = ConnectionState.CLOSED
            raise
        session._connection = connection
        session._state = ConnectionState.OPEN
        try:
            yield session
        finally:
            session._state = ConnectionState.CLOSING
            try:
                await self._discard(connection, config.endpoint_label)
            finally:
                session._state = ConnectionState.CLOSED
                session._connection = None

    def _connect_kwargs(self, config: DatasourceConfig, timeout_ms: int | None) -> dict[str, object]:
        endpoint = config.endpoint
        auth = config.authentication
        assert endpoint is not None and auth is not None  # checked by _validated()
        if timeout_ms is None:
            timeout_ms = config.connect_timeout_ms or self._connect_timeout_ms
        kwargs: dict[str, object] = {
            "host": endpoint.host,
            "port": endpoint.port,
            "database": auth.database_name,
            "timeout": timeout_ms / 1000,
        }
        if auth.username:
            kwargs["user"] = auth.username
        if auth.password:
            kwargs["password"] = auth.password
        ssl_context = build_ssl_context(config.connection)
        kwargs["ssl"] = ssl_context if ssl_context is not None else False
        return kwargs


def build_ssl_context(options: ConnectionOptions | None) -> ssl.SSLContext | None:
    """Return the TLS context for ``options``, or ``None`` when TLS is off.

    Server certificates are not verified. CA, client certificate and key are
    only loaded in self-signed mode; each may be PEM text or a file path.
    """

    if options is None or not options.use_ssl:
        return None
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    if not options.use_self_signed_ssl:
        return context
    with ExitStack() as stack:
        if options.ca:
            context.load_verify_locations(cafile=stack.enter_context(_as_file(options.ca, "ca.pem")))
        if options.cert:
            certfile = stack.enter_context(_as_file(options.cert, "cert.pem"))
            keyfile = stack.enter_context(_as_file(options.key, "key.pem")) if options.key else None
            context.load_cert_chain(certfile, keyfile)
    return context


@contextmanager
def _as_file(material: str, name: str) -> Iterator[str]:
    if not material.lstrip().startswith(_PEM_MARKER):
        yield material
        return
    with tempfile.TemporaryDirectory(prefix="psqlconnector-") as tmp:
        path = Path(tmp) / name
        path.write_text(material)
        yield str(path)


def _validated(config: DatasourceConfig | None) -> DatasourceConfig:
    if config is None:
        raise DatasourceConnectionError("Datasource not found for Postgres step")
    endpoint = config.endpoint
    if endpoint is None or not endpoint.host or endpoint.port is None:
        raise DatasourceConnectionError("Endpoint not specified for Postgres step")
    auth = config.authentication
    if auth is None:
        raise DatasourceConnectionError("Authentication not specified for Postgres step")
    if not auth.database_name:
        raise DatasourceConnectionError("Database not specified for Postgres step")
    return config


__all__ = [
    "ConnectionListeners",
    "ConnectionManager",
    "ConnectionSession",
    "ConnectionState",
    "build_ssl_context",
]
