"""
Per-caller turn serialization.

LINE may deliver two messages from the same parent in quick succession,
possibly in separate webhook requests. Each caller's session is mutated by
the turn that handles their message, so turns for one caller must not
overlap. Turns for different callers still run concurrently.
"""

from __future__ import annotations

import asyncio
import weakref
from contextlib import asynccontextmanager


class CallerLocks:
    """Registry of one asyncio.Lock per caller id."""

    def __init__(self):
        # Locks disappear once no turn holds or waits on them
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, caller_id: str) -> asyncio.Lock:
        lock = self._locks.get(caller_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[caller_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, caller_id: str):
        """Run the enclosed turn with the caller's lock held."""
        lock = self.lock_for(caller_id)
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


caller_locks = CallerLocks()
