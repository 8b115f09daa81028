"""Error hierarchy surfaced to the host application."""

from __future__ import annotations


class IntegrationError(RuntimeError):
    """Base error for every failure the connector reports."""


class DatasourceConnectionError(IntegrationError):
    """Raised when a connection cannot be opened, validated or closed."""


class QueryExecutionError(IntegrationError):
    """Raised when a statement fails on an otherwise live connection."""


class IntrospectionError(IntegrationError):
    """Raised when either catalog query fails."""


__all__ = [
    "DatasourceConnectionError",
    "IntegrationError",
    "IntrospectionError",
    "QueryExecutionError",
]
