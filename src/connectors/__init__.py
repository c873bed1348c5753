"""
Data source connectors.

execute_query dispatches on Connection.dialect:
- sqlite: local SQLite database file (connection.database)
- dataworld: data.world dataset (connection.url + connection.token)

Every connector module exposes connect, query, tables and schemas.

Connectors are blocking; run_query offloads them to the default executor
so the event loop keeps firing other timers while a query runs.
"""

import asyncio

from src.scheduler.entities import Connection, QueryResult

from .errors import ConnectorError
from . import dataworld, sqlite

CONNECTORS = {
    "sqlite": sqlite,
    "dataworld": dataworld,
}


def get_connector(dialect: str):
    """
    Return the connector module for dialect.

    Raises:
        ConnectorError: Unknown dialect
    """
    connector = CONNECTORS.get(dialect)
    if connector is None:
        raise ConnectorError(f"Unsupported dialect: {dialect}")
    return connector


def execute_query(query: str, connection: Connection) -> QueryResult:
    """
    Run query against connection.

    Raises:
        ConnectorError: Unknown dialect or connector failure
    """
    return get_connector(connection.dialect).query(query, connection)


async def run_query(query: str, connection: Connection) -> QueryResult:
    """Async wrapper around execute_query."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, execute_query, query, connection)


__all__ = [
    "ConnectorError",
    "CONNECTORS",
    "get_connector",
    "execute_query",
    "run_query",
]
