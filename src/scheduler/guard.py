"""
Execution guard for scheduled queries.

Timer ticks fire on a fixed cadence regardless of how long a sync takes,
so a slow query would otherwise overlap with the next tick. The guard keeps
one in-flight marker per fid; a tick that cannot acquire it is dropped.
"""

import threading
from contextlib import contextmanager
from typing import Iterator


class ExecutionGuard:
    """Per-fid in-flight markers behind a lock."""

    def __init__(self):
        self._running: set[str] = set()
        self._lock = threading.Lock()

    def try_acquire(self, fid: str) -> bool:
        """
        Mark fid as in flight.

        Returns:
            False if fid was already marked, True if the marker was set
        """
        with self._lock:
            if fid in self._running:
                return False
            self._running.add(fid)
            return True

    def release(self, fid: str) -> None:
        """Clear the marker for fid. Safe to call when not marked."""
        with self._lock:
            self._running.discard(fid)

    def is_running(self, fid: str) -> bool:
        with self._lock:
            return fid in self._running

    @contextmanager
    def hold(self, fid: str) -> Iterator[bool]:
        """
        Acquire the marker for the duration of a with-block.

        Yields whether the marker was acquired. The marker is released on
        exit only when this block acquired it.
        """
        acquired = self.try_acquire(fid)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(fid)

    def __len__(self) -> int:
        with self._lock:
            return len(self._running)
