"""
Query Scheduler Core Module.

Re-runs persisted queries on a fixed interval and pushes the results to
their remote grids:
- TimerBank: one recurring timer per grid fid
- ExecutionGuard: at most one in-flight sync per fid
- SyncWorker: authenticate, query, push, reconcile
- QueryScheduler: schedule / unschedule / bootstrap surface
"""

from .entities import (
    SyncState,
    QueryJob,
    QueryResult,
    Credentials,
    Connection,
    GridResponse,
    SyncOutcome,
)
from .errors import (
    SchedulerError,
    InvalidIntervalError,
    UnauthenticatedError,
    QueryExecutionError,
    GridApiError,
    GridNotFoundError,
    MalformedResponseError,
    ConnectionNotFoundError,
    QueryNotFoundError,
)
from .persistence import PersistenceAdapter
from .guard import ExecutionGuard
from .timer_bank import TimerBank
from .sync_worker import SyncWorker, GridClientProtocol
from .service import QueryScheduler

__all__ = [
    # Entities
    "SyncState",
    "QueryJob",
    "QueryResult",
    "Credentials",
    "Connection",
    "GridResponse",
    "SyncOutcome",
    # Errors
    "SchedulerError",
    "InvalidIntervalError",
    "UnauthenticatedError",
    "QueryExecutionError",
    "GridApiError",
    "GridNotFoundError",
    "MalformedResponseError",
    "ConnectionNotFoundError",
    "QueryNotFoundError",
    # Persistence
    "PersistenceAdapter",
    # Execution
    "ExecutionGuard",
    "TimerBank",
    "SyncWorker",
    "GridClientProtocol",
    # Service
    "QueryScheduler",
]
