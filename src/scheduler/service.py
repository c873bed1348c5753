"""
Query Scheduler Service - Main entry point for scheduled grid syncs.

Owns one TimerBank (fid -> recurring timer) and one ExecutionGuard
(fid -> in-flight marker) per instance, and wires them to the SyncWorker.

Usage:
    scheduler = QueryScheduler.create(db_path)
    scheduler.load_persisted_jobs()      # inside a running event loop
    scheduler.schedule_query(requestor=..., fid=..., uids=[...],
                             refresh_interval=60, query=..., connection_id=...)
    ...
    scheduler.unschedule_all()
"""

import asyncio
import functools
import logging
from pathlib import Path
from typing import Optional

from src.infra.settings import get_minimum_refresh_interval

from .entities import QueryJob, SyncOutcome, SyncState
from .errors import InvalidIntervalError, QueryNotFoundError
from .guard import ExecutionGuard
from .persistence import PersistenceAdapter
from .sync_worker import GridClientProtocol, QueryRunner, SyncWorker
from .timer_bank import SleepFunc, TimerBank


logger = logging.getLogger(__name__)


class QueryScheduler:
    """
    Schedules queries that periodically refresh remote grids.

    Provides:
    - schedule / unschedule / bootstrap of recurring syncs
    - At most one in-flight sync per fid
    - Removal of jobs whose grid is confirmed gone
    """

    def __init__(
        self,
        persistence: PersistenceAdapter,
        grid_client: GridClientProtocol,
        run_query: QueryRunner,
        minimum_refresh_interval: Optional[int] = None,
        sleep: Optional[SleepFunc] = None,
        api_url: str = "",
    ):
        """
        Initialize QueryScheduler with its collaborators.

        Use QueryScheduler.create() for the default SQLite + HTTP wiring.

        Args:
            persistence: Job store, credential store and connection registry
            grid_client: Remote grid API client
            run_query: Async query executor
            minimum_refresh_interval: Smallest accepted interval in seconds
            sleep: Async sleep used by timers (tests pass a manual clock)
            api_url: Grid API URL, used in log and error messages
        """
        self.persistence = persistence
        self.minimum_refresh_interval = (
            minimum_refresh_interval
            if minimum_refresh_interval is not None
            else get_minimum_refresh_interval()
        )
        self.timers = TimerBank(sleep=sleep)
        self.guard = ExecutionGuard()
        self.worker = SyncWorker(
            persistence=persistence,
            grid_client=grid_client,
            run_query=run_query,
            on_grid_removed=self._remove_job,
            api_url=api_url,
        )

    @classmethod
    def create(
        cls,
        db_path: str | Path,
        api_url: Optional[str] = None,
        minimum_refresh_interval: Optional[int] = None,
    ) -> "QueryScheduler":
        """
        Create a QueryScheduler backed by SQLite, the grid HTTP API and the
        built-in connectors.

        Args:
            db_path: Path to SQLite database
            api_url: Grid API base URL (defaults to PLOTLY_API_URL)
            minimum_refresh_interval: Override MINIMUM_REFRESH_INTERVAL

        Returns:
            Configured QueryScheduler
        """
        # Imported here: both modules import src.scheduler.entities
        from src.connectors import run_query
        from src.infra.grid_api import GridApiClient

        persistence = PersistenceAdapter(db_path)
        grid_client = GridApiClient(persistence.get_credentials, base_url=api_url)

        return cls(
            persistence=persistence,
            grid_client=grid_client,
            run_query=run_query,
            minimum_refresh_interval=minimum_refresh_interval,
            api_url=grid_client.base_url,
        )

    # =========================================================================
    # Registry
    # =========================================================================

    def _validate_interval(self, refresh_interval: Optional[int]) -> None:
        if not refresh_interval or refresh_interval < self.minimum_refresh_interval:
            raise InvalidIntervalError(refresh_interval, self.minimum_refresh_interval)

    def schedule_query(
        self,
        requestor: str,
        fid: str,
        uids: list[str],
        refresh_interval: Optional[int],
        query: str,
        connection_id: str,
    ) -> QueryJob:
        """
        Persist a query and arm its recurring timer.

        An existing job with the same fid is replaced: its stored record is
        deleted and its timer cancelled before the new one is armed.

        Raises:
            InvalidIntervalError: Interval missing or below the minimum
            RuntimeError: No running event loop
        """
        self._validate_interval(refresh_interval)
        asyncio.get_running_loop()

        job = QueryJob(
            fid=fid,
            requestor=requestor,
            uids=list(uids),
            query=query,
            connection_id=connection_id,
            refresh_interval=refresh_interval,
        )

        logger.info(
            f'Scheduling "{query}" with connection {connection_id} updating grid {fid}'
        )

        if self.persistence.get_query(fid) is not None:
            self.persistence.delete_query(fid)

        if fid in self.timers:
            self.timers.cancel(fid)

        self.persistence.save_query(job)
        self.timers.arm(fid, refresh_interval, functools.partial(self._tick, job))
        return job

    def load_persisted_jobs(self) -> int:
        """
        Schedule every stored query. Run once at startup.

        Stored queries whose interval no longer meets the minimum are
        skipped and left in storage.

        Returns:
            Number of timers armed
        """
        armed = 0
        for job in self.persistence.list_queries():
            try:
                self.schedule_query(
                    requestor=job.requestor,
                    fid=job.fid,
                    uids=job.uids,
                    refresh_interval=job.refresh_interval,
                    query=job.query,
                    connection_id=job.connection_id,
                )
                armed += 1
            except InvalidIntervalError as e:
                logger.error(f"Not scheduling stored query for grid {job.fid}: {e}")

        logger.info(f"Loaded {armed} persisted queries")
        return armed

    def unschedule_query(self, fid: str) -> bool:
        """
        Stop future syncs for fid. No-op if fid has no timer.

        The stored definition is kept; see remove_query.
        """
        removed = self.timers.cancel(fid)
        if removed:
            logger.info(f"Unscheduled query for grid {fid}")
        return removed

    def unschedule_all(self) -> int:
        """Cancel every timer. Returns the number cancelled."""
        count = self.timers.cancel_all()
        logger.info(f"Unscheduled {count} queries")
        return count

    def remove_query(self, fid: str) -> bool:
        """
        Unschedule fid and delete its stored definition.

        Returns:
            True if a timer or a stored record existed
        """
        had_timer = self.unschedule_query(fid)
        had_record = self.persistence.delete_query(fid)
        return had_timer or had_record

    def _remove_job(self, fid: str) -> None:
        """Terminal cleanup for a grid confirmed gone."""
        self.timers.cancel(fid)
        self.persistence.delete_query(fid)

    # =========================================================================
    # Execution
    # =========================================================================

    async def _tick(self, job: QueryJob) -> Optional[SyncOutcome]:
        """
        Timer callback: run one guarded sync of job.

        Returns None when a previous sync of the same fid is still running.
        Never raises.
        """
        with self.guard.hold(job.fid) as acquired:
            if not acquired:
                logger.debug(f"Sync of grid {job.fid} still running, skipping tick")
                return None

            try:
                return await self.worker.query_and_update_grid(job)
            except Exception as e:
                logger.error(f"Unexpected error syncing grid {job.fid}: {e}", exc_info=True)
                return SyncOutcome(fid=job.fid, state=SyncState.ABORTED, error=e)

    async def sync_now(self, fid: str) -> Optional[SyncOutcome]:
        """
        Run one sync of a stored query immediately.

        Raises:
            QueryNotFoundError: fid is not stored
        """
        job = self.persistence.get_query(fid)
        if job is None:
            raise QueryNotFoundError(fid)
        return await self._tick(job)

    async def create_and_schedule(
        self,
        requestor: str,
        filename: str,
        refresh_interval: Optional[int],
        query: str,
        connection_id: str,
    ) -> QueryJob:
        """
        Create a grid from a first run of query, then schedule it.

        The new grid's fid and column uids come from the create response.

        Raises:
            InvalidIntervalError: Checked before any remote call
            UnauthenticatedError, QueryExecutionError, GridApiError,
            MalformedResponseError: From the create flow
        """
        self._validate_interval(refresh_interval)

        payload = await self.worker.query_and_create_grid(
            filename, query, connection_id, requestor
        )
        grid_file = payload["file"]
        uids = [column["uid"] for column in grid_file.get("cols", [])]

        return self.schedule_query(
            requestor=requestor,
            fid=grid_file["fid"],
            uids=uids,
            refresh_interval=refresh_interval,
            query=query,
            connection_id=connection_id,
        )

    # =========================================================================
    # Status
    # =========================================================================

    def is_scheduled(self, fid: str) -> bool:
        return fid in self.timers

    def get_query(self, fid: str) -> Optional[QueryJob]:
        return self.persistence.get_query(fid)

    def list_queries(self) -> list[QueryJob]:
        return self.persistence.list_queries()

    def get_status(self) -> dict:
        return {
            "active_timers": len(self.timers),
            "running_syncs": len(self.guard),
            "minimum_refresh_interval": self.minimum_refresh_interval,
        }
