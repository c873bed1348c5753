"""
Scheduler Domain Entities.

- QueryJob: A persisted query that refreshes a remote grid on an interval
- QueryResult: Column names and rows returned by a connector
- Credentials: Grid API credentials for a requestor
- Connection: A named data source the query runs against
- GridResponse: Status and raw body returned by the grid API
- SyncOutcome: Result of one sync tick
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class SyncState(str, Enum):
    """
    Sync tick states.

    AUTH_PENDING -> QUERYING -> PUSHING_UPDATE -> RECONCILING -> DONE,
    with ABORTED reachable from any step.
    """

    AUTH_PENDING = "AUTH_PENDING"
    QUERYING = "QUERYING"
    PUSHING_UPDATE = "PUSHING_UPDATE"
    RECONCILING = "RECONCILING"
    DONE = "DONE"
    ABORTED = "ABORTED"


def now_iso() -> str:
    """Get current time as ISO format string."""
    return datetime.utcnow().isoformat() + "Z"


@dataclass
class QueryJob:
    """
    A scheduled query bound to a remote grid.

    Immutable once scheduled; changes go through a full replacement
    keyed by fid.
    """

    fid: str
    requestor: str
    uids: list[str]
    query: str
    connection_id: str
    refresh_interval: int
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict:
        return {
            "fid": self.fid,
            "requestor": self.requestor,
            "uids": list(self.uids),
            "query": self.query,
            "connection_id": self.connection_id,
            "refresh_interval": self.refresh_interval,
            "created_at": self.created_at,
        }


@dataclass
class QueryResult:
    """Rows returned by a connector, in column order."""

    column_names: list[str]
    rows: list[list[Any]]


@dataclass
class Credentials:
    """
    Grid API credentials for one user.

    api_key and access_token are both optional; a user needs at least one.
    """

    username: Optional[str] = None
    api_key: Optional[str] = None
    access_token: Optional[str] = None

    def is_complete(self) -> bool:
        return bool(self.username) and bool(self.api_key or self.access_token)


@dataclass
class Connection:
    """A data source registered under connection_id."""

    connection_id: str
    dialect: str
    database: Optional[str] = None
    url: Optional[str] = None
    token: Optional[str] = None


@dataclass
class GridResponse:
    """Status code and raw text body of a grid API call."""

    status: int
    body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        return json.loads(self.body)


@dataclass
class SyncOutcome:
    """How a single sync tick ended."""

    fid: str
    state: SyncState
    error: Optional[Exception] = None
    removed: bool = False
    push_status: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.state == SyncState.DONE and self.error is None
