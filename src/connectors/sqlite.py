"""
SQLite connector.

connection.database is the path to the database file.
"""

import sqlite3
from contextlib import closing
from pathlib import Path

from src.scheduler.entities import Connection, QueryResult

from .errors import ConnectorError

SCHEMA_COLUMNS = ["tablename", "column_name", "data_type"]


def _connect(connection: Connection) -> sqlite3.Connection:
    if not connection.database:
        raise ConnectorError(f"Connection {connection.connection_id} has no database path")
    if not Path(connection.database).exists():
        raise ConnectorError(f"SQLite database not found: {connection.database}")
    return sqlite3.connect(connection.database)


def query(query_string: str, connection: Connection) -> QueryResult:
    """Execute query_string and return column names and rows."""
    try:
        with closing(_connect(connection)) as conn:
            cursor = conn.execute(query_string)
            column_names = [column[0] for column in cursor.description or []]
            rows = [list(row) for row in cursor.fetchall()]
    except sqlite3.Error as e:
        raise ConnectorError(str(e)) from e

    return QueryResult(column_names=column_names, rows=rows)


def tables(connection: Connection) -> list[str]:
    """List table names in the database."""
    result = query(
        "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name",
        connection,
    )
    return [row[0] for row in result.rows]


def connect(connection: Connection) -> None:
    """Open and close the database to check it is usable."""
    try:
        with closing(_connect(connection)) as conn:
            conn.execute("SELECT 1 FROM sqlite_master LIMIT 1")
    except sqlite3.Error as e:
        raise ConnectorError(str(e)) from e


def schemas(connection: Connection) -> QueryResult:
    """List every column of every table as (tablename, column_name, data_type)."""
    result = query(
        "SELECT m.name, p.name, p.type "
        "FROM sqlite_master AS m JOIN pragma_table_info(m.name) AS p "
        "WHERE m.type = 'table' ORDER BY m.name, p.cid",
        connection,
    )
    return QueryResult(column_names=list(SCHEMA_COLUMNS), rows=result.rows)
