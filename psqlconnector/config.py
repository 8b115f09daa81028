"""Datasource models and connector settings loading helpers."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

import tomllib

from pydantic import BaseModel, ConfigDict, Field, ValidationError

LOG = logging.getLogger(__name__)

CONFIG_FILE = Path.home() / ".config" / "psqlconnector" / "config.toml"

DEFAULT_CONNECT_TIMEOUT_MS = 30000
TEST_CONNECTION_TIMEOUT_MS = 5000


class TlsMode(str, Enum):
    """How the connection negotiates TLS."""

    OFF = "off"
    ENABLED = "enabled"
    ENABLED_WITH_CLIENT_CERT = "enabled_with_client_cert"


class Endpoint(BaseModel):
    """Network location of the PostgreSQL server."""

    model_config = ConfigDict(frozen=True)

    host: str | None = None
    port: int | None = None


class Authentication(BaseModel):
    """Credentials and target database."""

    model_config = ConfigDict(frozen=True)

    username: str | None = None
    password: str | None = None
    database_name: str | None = None


class ConnectionOptions(BaseModel):
    """TLS material and listener options for a datasource."""

    model_config = ConfigDict(frozen=True)

    use_ssl: bool = False
    use_self_signed_ssl: bool = False
    ca: str | None = None
    cert: str | None = None
    key: str | None = None
    listen_channels: tuple[str, ...] = ()


class DatasourceConfig(BaseModel):
    """Everything needed to open a connection to one PostgreSQL database."""

    model_config = ConfigDict(frozen=True)

    endpoint: Endpoint | None = None
    authentication: Authentication | None = None
    connection: ConnectionOptions | None = None
    connect_timeout_ms: int | None = None

    @property
    def tls_mode(self) -> TlsMode:
        options = self.connection
        if options is None or not options.use_ssl:
            return TlsMode.OFF
        if options.use_self_signed_ssl:
            return TlsMode.ENABLED_WITH_CLIENT_CERT
        return TlsMode.ENABLED

    @property
    def endpoint_label(self) -> str:
        """``host:port`` label used to tag log records."""

        endpoint = self.endpoint or Endpoint()
        return f"{endpoint.host}:{endpoint.port}"


class ActionConfig(BaseModel):
    """Per-step configuration supplied by the host."""

    model_config = ConfigDict(frozen=True)

    body: str | None = None


class ConnectorSettings(BaseModel):
    """Process-wide defaults read from config.toml."""

    connect_timeout_ms: int = DEFAULT_CONNECT_TIMEOUT_MS
    test_timeout_ms: int = TEST_CONNECTION_TIMEOUT_MS
    datasources: dict[str, DatasourceConfig] = Field(default_factory=dict)

    def datasource(self, name: str) -> DatasourceConfig | None:
        """Return a named datasource declared in the settings file."""

        return self.datasources.get(name)


def load_settings(path: Path | None = None) -> ConnectorSettings:
    """Load settings from disk; fall back to defaults if missing or malformed."""

    config_path = path or CONFIG_FILE
    try:
        with config_path.open("rb") as handle:
            raw = tomllib.load(handle)
    except FileNotFoundError:
        return ConnectorSettings()
    except (tomllib.TOMLDecodeError, OSError) as exc:
        LOG.warning("Ignoring unreadable settings file", extra={"path": str(config_path), "error": str(exc)})
        return ConnectorSettings()

    data: dict[str, object] = {}
    connector = raw.get("connector")
    if isinstance(connector, dict):
        for key in ("connect_timeout_ms", "test_timeout_ms"):
            value = connector.get(key)
            if isinstance(value, int):
                data[key] = value
    datasources = raw.get("datasources")
    if isinstance(datasources, list):
        parsed: dict[str, object] = {}
        for entry in datasources:
            if not isinstance(entry, dict):
                continue
            name = entry.get("name")
            if isinstance(name, str) and name:
                parsed[name] = {key: value for key, value in entry.items() if key != "name"}
        data["datasources"] = parsed

    try:
        return ConnectorSettings.model_validate(data)
    except ValidationError as exc:
        LOG.warning("Ignoring invalid settings file", extra={"path": str(config_path), "error": str(exc)})
        return ConnectorSettings()


__all__ = [
    "ActionConfig",
    "Authentication",
    "CONFIG_FILE",
    "ConnectionOptions",
    "ConnectorSettings",
    "DEFAULT_CONNECT_TIMEOUT_MS",
    "DatasourceConfig",
    "Endpoint",
    "TEST_CONNECTION_TIMEOUT_MS",
    "TlsMode",
    "load_settings",
]
