"""
Timer Bank for scheduled queries.

One recurring asyncio task per fid. Each timer sleeps for its interval and
then dispatches the tick callback as a separate task, so tick cadence does
not depend on how long a tick takes to run.

Cancelling a timer only stops future ticks. Ticks that were already
dispatched run to completion.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional


logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[object]]
SleepFunc = Callable[[float], Awaitable[None]]


class TimerBank:
    """
    Registry of running timers keyed by fid.

    Args:
        sleep: Async sleep used between ticks (injectable for tests)
    """

    def __init__(self, sleep: Optional[SleepFunc] = None):
        self._sleep = sleep or asyncio.sleep
        self._timers: dict[str, asyncio.Task] = {}
        # Strong references to dispatched ticks until they finish
        self._ticks: set[asyncio.Task] = set()

    def arm(self, fid: str, interval: float, callback: TickCallback) -> None:
        """
        Start a recurring timer that calls callback every interval seconds.

        Any timer already armed for fid is cancelled first.
        Must be called with a running event loop.
        """
        self.cancel(fid)
        loop = asyncio.get_running_loop()
        task = loop.create_task(
            self._run(fid, interval, callback),
            name=f"timer:{fid}",
        )
        self._timers[fid] = task
        logger.debug(f"[TimerBank] Armed {fid} every {interval}s")

    async def _run(self, fid: str, interval: float, callback: TickCallback) -> None:
        """Timer loop: sleep, dispatch tick, repeat until cancelled."""
        loop = asyncio.get_running_loop()
        while True:
            await self._sleep(interval)
            tick = loop.create_task(callback(), name=f"tick:{fid}")
            self._ticks.add(tick)
            tick.add_done_callback(self._ticks.discard)

    def cancel(self, fid: str) -> bool:
        """
        Cancel and forget the timer for fid.

        Returns:
            True if a timer was cancelled, False if none was armed
        """
        task = self._timers.pop(fid, None)
        if task is None:
            return False
        task.cancel()
        logger.debug(f"[TimerBank] Cancelled {fid}")
        return True

    def cancel_all(self) -> int:
        """Cancel every timer. Returns the number cancelled."""
        fids = list(self._timers)
        for fid in fids:
            self.cancel(fid)
        return len(fids)

    def active_ids(self) -> list[str]:
        return sorted(self._timers)

    @property
    def pending_ticks(self) -> int:
        """Number of dispatched ticks that have not finished yet."""
        return len(self._ticks)

    async def wait_for_ticks(self) -> None:
        """Wait until every dispatched tick has finished."""
        while self._ticks:
            await asyncio.gather(*list(self._ticks), return_exceptions=True)

    def __contains__(self, fid: object) -> bool:
        return fid in self._timers

    def __len__(self) -> int:
        return len(self._timers)
