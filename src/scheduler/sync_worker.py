"""
Sync Worker for scheduled queries.

Runs one sync of a query into its grid:

    AUTH_PENDING -> QUERYING -> PUSHING_UPDATE -> RECONCILING -> DONE
                        (any step) -> ABORTED

Expected failures (SchedulerError) end the tick and are reported in the
returned SyncOutcome. The only failures that remove a job are the two
"grid confirmed gone" cases found while reconciling.

The grid API answers updates to a deleted grid with a generic server error
rather than a 404, so a failed update is always followed by a metadata
fetch before the job is removed.
"""

import json
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Protocol

from .entities import (
    Connection,
    Credentials,
    GridResponse,
    QueryJob,
    QueryResult,
    SyncOutcome,
    SyncState,
)
from .errors import (
    ConnectionNotFoundError,
    GridApiError,
    GridNotFoundError,
    MalformedResponseError,
    QueryExecutionError,
    SchedulerError,
    UnauthenticatedError,
)
from .persistence import PersistenceAdapter


logger = logging.getLogger(__name__)

QueryRunner = Callable[[str, Connection], Awaitable[QueryResult]]


class GridClientProtocol(Protocol):
    """Protocol for the remote grid API client."""

    async def verify_user(self, username: str) -> GridResponse:
        ...

    async def create_grid(
        self,
        filename: str,
        column_names: list[str],
        rows: list[list[Any]],
        requestor: str,
    ) -> GridResponse:
        ...

    async def update_grid(
        self,
        rows: list[list[Any]],
        fid: str,
        uids: list[str],
        requestor: str,
    ) -> GridResponse:
        ...

    async def get_grid_meta(self, fid: str, username: str) -> GridResponse:
        ...


class SyncWorker:
    """
    Executes queries and pushes their results to the grid API.

    Args:
        persistence: Source of credentials and connections
        grid_client: Remote grid API client
        run_query: Async query executor (query, connection) -> QueryResult
        on_grid_removed: Called with fid when a grid is confirmed gone
        api_url: Grid API URL, used in authentication error messages
    """

    def __init__(
        self,
        persistence: PersistenceAdapter,
        grid_client: GridClientProtocol,
        run_query: QueryRunner,
        on_grid_removed: Callable[[str], None],
        api_url: str = "",
    ):
        self.persistence = persistence
        self.grid_client = grid_client
        self._run_query = run_query
        self._on_grid_removed = on_grid_removed
        self.api_url = api_url

    # =========================================================================
    # Steps
    # =========================================================================

    async def _authenticate(self, requestor: str, action: str) -> Credentials:
        """
        Check that requestor has usable credentials the grid API accepts.

        Raises:
            UnauthenticatedError: Missing credentials or failed identity check
        """
        credentials = self.persistence.get_credentials(requestor)

        if not credentials.is_complete():
            raise UnauthenticatedError(
                f"Attempting to {action} but the authentication credentials "
                f'for the user "{requestor}" do not exist.'
            )

        response = await self.grid_client.verify_user(credentials.username)
        if response.status != 200:
            raise UnauthenticatedError(
                f"{self.api_url} failed to identify {credentials.username}."
            )

        return credentials

    async def _query(self, query: str, connection_id: str, purpose: str) -> QueryResult:
        """
        Resolve the connection (never cached) and run the query.

        Raises:
            QueryExecutionError: Unknown connection or connector failure
        """
        try:
            connection = self.persistence.get_connection(connection_id)
        except ConnectionNotFoundError as e:
            raise QueryExecutionError(query, connection_id, str(e)) from e

        logger.info(f'Querying "{query}" with connection {connection_id} {purpose}')
        start = time.monotonic()

        try:
            result = await self._run_query(query, connection)
        except Exception as e:
            raise QueryExecutionError(query, connection_id, str(e)) from e

        logger.info(f'Query "{query}" took {time.monotonic() - start:.2f} seconds')
        logger.debug(f"First row: {json.dumps(result.rows[:1], default=str)}")
        return result

    async def _reconcile(
        self, job: QueryJob, username: str
    ) -> Optional[GridNotFoundError]:
        """
        Decide whether a failed update means the grid is gone.

        Returns:
            The GridNotFoundError that removed the job, or None if it stays
            scheduled

        Raises:
            MalformedResponseError: Metadata body is not a JSON object
        """
        meta = await self.grid_client.get_grid_meta(job.fid, username)

        if meta.status == 404:
            logger.info(
                f"Grid ID {job.fid} doesn't exist on the grid API anymore, "
                "removing persistent query."
            )
            self._on_grid_removed(job.fid)
            return GridNotFoundError(job.fid)

        try:
            filemeta = meta.json()
        except ValueError as e:
            raise MalformedResponseError(job.fid, meta.body) from e

        if not isinstance(filemeta, dict):
            raise MalformedResponseError(job.fid, meta.body)

        if filemeta.get("deleted"):
            logger.info(f"Grid ID {job.fid} was deleted, removing persistent query.")
            self._on_grid_removed(job.fid)
            return GridNotFoundError(job.fid, deleted=True)

        return None

    # =========================================================================
    # Flows
    # =========================================================================

    async def query_and_update_grid(self, job: QueryJob) -> SyncOutcome:
        """
        Run one recurring sync for job.

        Never raises SchedulerError; unexpected exceptions propagate to the
        tick handler.
        """
        state = SyncState.AUTH_PENDING
        try:
            credentials = await self._authenticate(
                job.requestor, f"update grid {job.fid}"
            )

            state = SyncState.QUERYING
            result = await self._query(
                job.query, job.connection_id, f"to update grid {job.fid}"
            )

            state = SyncState.PUSHING_UPDATE
            logger.info(f"Updating grid {job.fid} with new data")
            start = time.monotonic()
            response = await self.grid_client.update_grid(
                result.rows, job.fid, job.uids, job.requestor
            )
            logger.info(
                f"Request to the grid API for grid {job.fid} took "
                f"{time.monotonic() - start:.2f} seconds"
            )

            if response.status == 200:
                logger.info(f"Grid {job.fid} has been updated.")
                return SyncOutcome(
                    fid=job.fid, state=SyncState.DONE, push_status=response.status
                )

            logger.warning(f"Error {response.status} while updating grid {job.fid}.")

            state = SyncState.RECONCILING
            gone = await self._reconcile(job, credentials.username)
            if gone is not None:
                return SyncOutcome(
                    fid=job.fid,
                    state=SyncState.DONE,
                    error=gone,
                    removed=True,
                    push_status=response.status,
                )

            logger.warning(
                f"Grid {job.fid} still exists after a failed update "
                f"(status {response.status}); keeping the query scheduled."
            )
            return SyncOutcome(
                fid=job.fid, state=SyncState.ABORTED, push_status=response.status
            )

        except MalformedResponseError as e:
            logger.error(f"{e}. Text response: {e.raw_body}")
            return SyncOutcome(fid=job.fid, state=SyncState.ABORTED, error=e)

        except SchedulerError as e:
            logger.error(f"Sync of grid {job.fid} aborted in {state.value}: {e}")
            return SyncOutcome(fid=job.fid, state=SyncState.ABORTED, error=e)

    async def query_and_create_grid(
        self,
        filename: str,
        query: str,
        connection_id: str,
        requestor: str,
    ) -> dict:
        """
        Run query once and upload the result as a new grid.

        Returns:
            Parsed grid API response ({"file": {"fid": ..., "cols": [...]}})

        Raises:
            UnauthenticatedError: Credentials missing or rejected
            QueryExecutionError: Query failed
            GridApiError: Grid API did not create the grid
            MalformedResponseError: Response body is not JSON
        """
        await self._authenticate(requestor, "create a grid")

        result = await self._query(query, connection_id, "to create a new grid")

        logger.info("Create a new grid with new data")
        start = time.monotonic()
        response = await self.grid_client.create_grid(
            filename, result.column_names, result.rows, requestor
        )
        logger.info(
            f"Request to the grid API for creating a grid took "
            f"{time.monotonic() - start:.2f} seconds"
        )

        if response.status != 201:
            logger.error(f"Error {response.status} while creating a grid")
            raise GridApiError("creating a grid", response.status, response.body)

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponseError(filename, response.body) from e

        fid: Optional[str] = (payload.get("file") or {}).get("fid") if isinstance(payload, dict) else None
        if fid is None:
            raise MalformedResponseError(filename, response.body)

        logger.info(f"Grid {fid} has been created.")
        return payload
