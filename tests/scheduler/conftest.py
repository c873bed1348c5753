"""
Scheduler Test Fixtures.

Base fixtures:
  - Temporary SQLite database with one user and one connection
  - Manual clock driving every timer
  - Grid API client and query runner doubles

All timing is virtual: timers sleep on ManualClock and only fire when a
test calls clock.advance().
"""

import asyncio
import contextlib
import json
from typing import Callable, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from src.scheduler import (
    Connection,
    Credentials,
    GridResponse,
    PersistenceAdapter,
    QueryJob,
    QueryResult,
    QueryScheduler,
)


MINIMUM_INTERVAL = 60
API_URL = "https://grids.example.test"


async def drain(rounds: int = 50) -> None:
    """Let pending callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class ManualClock:
    """
    Virtual clock for timer tests.

    - Starts at 0
    - sleep() only returns once advance() moves time past its deadline
    """

    def __init__(self):
        self.now = 0.0
        self._seq = 0
        self._sleepers: list[tuple[float, int, asyncio.Future]] = []

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._seq += 1
        self._sleepers.append((self.now + seconds, self._seq, future))
        await future

    async def advance(self, seconds: float) -> None:
        """Advance time, waking due sleepers in deadline order."""
        target = self.now + seconds
        await drain()

        while True:
            self._sleepers = [s for s in self._sleepers if not s[2].done()]
            due = [s for s in self._sleepers if s[0] <= target]
            if not due:
                break

            entry = min(due, key=lambda s: (s[0], s[1]))
            self._sleepers.remove(entry)
            self.now = entry[0]
            entry[2].set_result(None)
            await drain()

        self.now = target
        await drain()

    @property
    def pending_sleepers(self) -> int:
        return len([s for s in self._sleepers if not s[2].done()])


class FakeQueryRunner:
    """
    Query runner double.

    Counts concurrent invocations; set `gate` to hold queries open and
    `error` to make them fail.
    """

    def __init__(self, result: Optional[QueryResult] = None):
        self.result = result or QueryResult(column_names=["x"], rows=[[1]])
        self.calls: list[tuple[str, str]] = []
        self.active = 0
        self.max_active = 0
        self.gate: Optional[asyncio.Event] = None
        self.error: Optional[Exception] = None

    async def __call__(self, query: str, connection: Connection) -> QueryResult:
        self.calls.append((query, connection.connection_id))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.error is not None:
                raise self.error
            return self.result
        finally:
            self.active -= 1


def make_grid_client() -> MagicMock:
    """Grid client double where every call succeeds."""
    client = MagicMock()
    client.verify_user = AsyncMock(return_value=GridResponse(status=200, body="{}"))
    client.update_grid = AsyncMock(return_value=GridResponse(status=200, body="{}"))
    client.get_grid_meta = AsyncMock(
        return_value=GridResponse(status=200, body=json.dumps({"deleted": False}))
    )
    client.create_grid = AsyncMock(
        return_value=GridResponse(
            status=201,
            body=json.dumps({
                "file": {
                    "fid": "alice:99",
                    "cols": [{"name": "x", "uid": "c0ffee"}],
                }
            }),
        )
    )
    return client


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def persistence(tmp_path) -> PersistenceAdapter:
    """Fresh database with user "alice" and connection "local"."""
    adapter = PersistenceAdapter(tmp_path / "scheduler.db")
    adapter.save_credentials(Credentials(username="alice", api_key="alice-key"))
    adapter.save_connection(
        Connection(
            connection_id="local",
            dialect="sqlite",
            database=str(tmp_path / "source.db"),
        )
    )
    return adapter


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def grid_client() -> MagicMock:
    return make_grid_client()


@pytest.fixture
def query_runner() -> FakeQueryRunner:
    return FakeQueryRunner()


@pytest_asyncio.fixture
async def scheduler(
    persistence: PersistenceAdapter,
    grid_client: MagicMock,
    query_runner: FakeQueryRunner,
    clock: ManualClock,
) -> QueryScheduler:
    """QueryScheduler on the manual clock; timers cancelled on teardown."""
    service = QueryScheduler(
        persistence=persistence,
        grid_client=grid_client,
        run_query=query_runner,
        minimum_refresh_interval=MINIMUM_INTERVAL,
        sleep=clock.sleep,
        api_url=API_URL,
    )

    yield service

    service.unschedule_all()
    if query_runner.gate is not None:
        query_runner.gate.set()
    with contextlib.suppress(asyncio.TimeoutError):
        await asyncio.wait_for(service.timers.wait_for_ticks(), timeout=1.0)


# =============================================================================
# Job Factory Fixtures
# =============================================================================


@pytest.fixture
def schedule(scheduler: QueryScheduler) -> Callable:
    """
    Factory fixture for scheduling jobs with defaults.

    Must be called from inside an async test.
    """

    def _schedule(
        fid: str = "alice:1",
        requestor: str = "alice",
        uids: Optional[list] = None,
        refresh_interval: Optional[int] = MINIMUM_INTERVAL,
        query: str = "SELECT 1",
        connection_id: str = "local",
    ) -> QueryJob:
        return scheduler.schedule_query(
            requestor=requestor,
            fid=fid,
            uids=uids if uids is not None else ["u1"],
            refresh_interval=refresh_interval,
            query=query,
            connection_id=connection_id,
        )

    return _schedule


def make_job(fid: str = "alice:1", **overrides) -> QueryJob:
    """Build a QueryJob without scheduling it."""
    values = {
        "fid": fid,
        "requestor": "alice",
        "uids": ["u1"],
        "query": "SELECT 1",
        "connection_id": "local",
        "refresh_interval": MINIMUM_INTERVAL,
    }
    values.update(overrides)
    return QueryJob(**values)
