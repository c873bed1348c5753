"""
Scheduler-specific exceptions.

Only InvalidIntervalError reaches callers of schedule_query. The rest are
raised inside a sync tick and end that tick without escaping the timer.
"""


class SchedulerError(Exception):
    """Base exception for all scheduler errors."""
    pass


class InvalidIntervalError(SchedulerError):
    """
    Raised when a refresh interval is missing or below the minimum.

    Raised before any persistence or timer mutation.
    """

    def __init__(self, refresh_interval, minimum: int):
        self.refresh_interval = refresh_interval
        self.minimum = minimum
        if not refresh_interval:
            message = "Refresh interval was not supplied"
        else:
            message = (
                f"Refresh interval must be at least {minimum} seconds "
                f"(supplied {refresh_interval})"
            )
        super().__init__(message)


class UnauthenticatedError(SchedulerError):
    """
    Raised when a requestor's credentials are missing or rejected.

    The front end matches on the word "Unauthenticated" in this message.
    """

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Unauthenticated: {detail}")


class QueryExecutionError(SchedulerError):
    """Raised when the connector fails to run a job's query."""

    def __init__(self, query: str, connection_id: str, reason: str):
        self.query = query
        self.connection_id = connection_id
        self.reason = reason
        super().__init__(
            f'Query "{query}" failed on connection {connection_id}: {reason}'
        )


class GridNotFoundError(SchedulerError):
    """Raised when a grid is confirmed missing or deleted on the remote store."""

    def __init__(self, fid: str, deleted: bool = False):
        self.fid = fid
        self.deleted = deleted
        reason = "was deleted" if deleted else "doesn't exist anymore"
        super().__init__(f"Grid {fid} {reason}")


class GridApiError(SchedulerError):
    """Raised when the grid API rejects a request the caller cannot recover from."""

    def __init__(self, action: str, status: int, body: str = ""):
        self.action = action
        self.status = status
        self.body = body
        super().__init__(f"Error {status} while {action}")


class MalformedResponseError(SchedulerError):
    """Raised when a grid API body cannot be parsed."""

    def __init__(self, fid: str, raw_body: str):
        self.fid = fid
        self.raw_body = raw_body
        super().__init__(f"Failed to parse the JSON response for grid {fid}")


class ConnectionNotFoundError(SchedulerError):
    """Raised when a connection id is not registered."""

    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        super().__init__(f"Connection not found: {connection_id}")


class QueryNotFoundError(SchedulerError):
    """Raised when a requested scheduled query does not exist."""

    def __init__(self, fid: str):
        self.fid = fid
        super().__init__(f"Query not found: {fid}")
