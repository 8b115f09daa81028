"""PostgreSQL connector: query execution and schema introspection."""

from __future__ import annotations

__version__ = "0.1.0"

from .config import (
    ActionConfig,
    Authentication,
    ConnectionOptions,
    ConnectorSettings,
    DatasourceConfig,
    Endpoint,
    TlsMode,
    load_settings,
)
from .connections import ConnectionManager, ConnectionSession, ConnectionState
from .connector import PostgresConnector
from .errors import DatasourceConnectionError, IntegrationError, IntrospectionError, QueryExecutionError
from .models import (
    Column,
    DatasourceMetadata,
    ExecutionOutput,
    Key,
    KeyType,
    QueryResult,
    SchemaGraph,
    Table,
    TableType,
)

__all__ = [
    "ActionConfig",
    "Authentication",
    "Column",
    "ConnectionManager",
    "ConnectionOptions",
    "ConnectionSession",
    "ConnectionState",
    "ConnectorSettings",
    "DatasourceConfig",
    "DatasourceConnectionError",
    "DatasourceMetadata",
    "Endpoint",
    "ExecutionOutput",
    "IntegrationError",
    "IntrospectionError",
    "Key",
    "KeyType",
    "PostgresConnector",
    "QueryExecutionError",
    "QueryResult",
    "SchemaGraph",
    "Table",
    "TableType",
    "TlsMode",
    "load_settings",
    "__version__",
]
