"""
Persistence Adapter for the Query Scheduler.

SQLite storage with WAL mode for:
- Scheduled query definitions (one row per grid fid)
- Registered data source connections
- Grid API user credentials

Does NOT contain scheduling logic. A fresh connection is opened per
operation so the adapter can be shared by the event loop and executor
threads.
"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .entities import Connection, Credentials, QueryJob
from .errors import ConnectionNotFoundError


class PersistenceAdapter:
    """
    SQLite-based persistence for queries, connections and credentials.

    Query operations are the job store used by the scheduler:
    get_query / list_queries / save_query / delete_query.
    """

    def __init__(self, db_path: str | Path):
        """
        Initialize persistence adapter.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with WAL mode enabled."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = self._get_connection()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS queries (
                    fid TEXT PRIMARY KEY,
                    requestor TEXT NOT NULL,
                    uids TEXT NOT NULL DEFAULT '[]',
                    query TEXT NOT NULL,
                    connection_id TEXT NOT NULL,
                    refresh_interval INTEGER NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS connections (
                    connection_id TEXT PRIMARY KEY,
                    dialect TEXT NOT NULL,
                    database TEXT,
                    url TEXT,
                    token TEXT
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    username TEXT PRIMARY KEY,
                    api_key TEXT,
                    access_token TEXT
                )
            """)

    # =========================================================================
    # Query Operations
    # =========================================================================

    def save_query(self, job: QueryJob) -> QueryJob:
        """Insert or replace the query stored under job.fid."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO queries
                (fid, requestor, uids, query, connection_id, refresh_interval, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job.fid,
                    job.requestor,
                    json.dumps(list(job.uids)),
                    job.query,
                    job.connection_id,
                    job.refresh_interval,
                    job.created_at,
                ),
            )
        return job

    def get_query(self, fid: str) -> Optional[QueryJob]:
        """Get a stored query by grid fid."""
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM queries WHERE fid = ?",
                (fid,),
            ).fetchone()

        if row is None:
            return None
        return self._row_to_query(row)

    def _row_to_query(self, row: sqlite3.Row) -> QueryJob:
        return QueryJob(
            fid=row["fid"],
            requestor=row["requestor"],
            uids=json.loads(row["uids"]),
            query=row["query"],
            connection_id=row["connection_id"],
            refresh_interval=row["refresh_interval"],
            created_at=row["created_at"],
        )

    def list_queries(self) -> list[QueryJob]:
        """List all stored queries, oldest first."""
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT * FROM queries ORDER BY created_at ASC, fid ASC"
            ).fetchall()

        return [self._row_to_query(row) for row in rows]

    def delete_query(self, fid: str) -> bool:
        """
        Delete a stored query.

        Returns:
            True if a row was removed, False if fid was not stored
        """
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM queries WHERE fid = ?", (fid,))
            return cursor.rowcount > 0

    def count_queries(self, fid: Optional[str] = None) -> int:
        """Count stored queries, optionally for a single fid."""
        with self._connection() as conn:
            if fid is None:
                row = conn.execute("SELECT COUNT(*) FROM queries").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM queries WHERE fid = ?", (fid,)
                ).fetchone()
        return row[0]

    # =========================================================================
    # Connection Operations
    # =========================================================================

    def save_connection(self, connection: Connection) -> Connection:
        """Insert or replace a data source connection."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO connections
                (connection_id, dialect, database, url, token)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    connection.connection_id,
                    connection.dialect,
                    connection.database,
                    connection.url,
                    connection.token,
                ),
            )
        return connection

    def get_connection(self, connection_id: str) -> Connection:
        """
        Resolve a connection by id.

        Raises:
            ConnectionNotFoundError: If connection_id is not registered
        """
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM connections WHERE connection_id = ?",
                (connection_id,),
            ).fetchone()

        if row is None:
            raise ConnectionNotFoundError(connection_id)

        return Connection(
            connection_id=row["connection_id"],
            dialect=row["dialect"],
            database=row["database"],
            url=row["url"],
            token=row["token"],
        )

    def delete_connection(self, connection_id: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM connections WHERE connection_id = ?", (connection_id,)
            )
            return cursor.rowcount > 0

    # =========================================================================
    # Credential Operations
    # =========================================================================

    def save_credentials(self, credentials: Credentials) -> Credentials:
        """Insert or replace the credentials stored for credentials.username."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO users (username, api_key, access_token)
                VALUES (?, ?, ?)
                """,
                (
                    credentials.username,
                    credentials.api_key,
                    credentials.access_token,
                ),
            )
        return credentials

    def get_credentials(self, requestor: str) -> Credentials:
        """
        Get grid API credentials for a requestor.

        Unknown requestors get empty Credentials rather than an error.
        """
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE username = ?",
                (requestor,),
            ).fetchone()

        if row is None:
            return Credentials()

        return Credentials(
            username=row["username"],
            api_key=row["api_key"],
            access_token=row["access_token"],
        )
