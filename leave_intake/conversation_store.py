"""
In-memory session store with idle eviction.

Sessions live only in process memory. A background sweep drops every
session whose last activity is older than the idle timeout; the caller is
not notified and simply starts over on their next message.
"""

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from leave_intake.conversation_state import ConversationSession

logger = logging.getLogger(__name__)


class ConversationStore:
    """Keyed session storage shared by every turn and the idle sweeper."""

    def __init__(
        self,
        idle_timeout_seconds: float = 600,
        clock: Callable[[], float] = time.time,
    ):
        self.idle_timeout_seconds = idle_timeout_seconds
        self.clock = clock
        self._sessions: OrderedDict[str, ConversationSession] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def _is_idle(self, session: ConversationSession, now: float) -> bool:
        return session.last_activity_at < now - self.idle_timeout_seconds

    def get(self, caller_id: str) -> ConversationSession | None:
        """Live session for caller_id; an idle one is evicted and reads as missing."""
        now = self.clock()
        with self._lock:
            session = self._sessions.get(caller_id)
            if session is not None and self._is_idle(session, now):
                del self._sessions[caller_id]
                session = None
        return session

    def set(self, caller_id: str, session: ConversationSession) -> None:
        with self._lock:
            self._sessions[caller_id] = session
            self._sessions.move_to_end(caller_id)

    def save(self, session: ConversationSession) -> bool:
        """
        Store a session read earlier in the same turn.

        Returns False, leaving the store untouched, when the session was evicted
        or replaced in the meantime.
        """
        with self._lock:
            if self._sessions.get(session.caller_id) is not session:
                logger.info(f"Dropped update for evicted conversation: {session.caller_id}")
                return False
            self._sessions.move_to_end(session.caller_id)
            return True

    def delete(self, caller_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(caller_id, None) is not None

    def touch(self, session: ConversationSession) -> None:
        """Refresh last activity and (re)store the session."""
        session.last_activity_at = self.clock()
        self.set(session.caller_id, session)

    def sweep(self) -> list[str]:
        """
        Evict idle sessions.

        Returns:
            Caller ids whose sessions were removed
        """
        now = self.clock()
        with self._lock:
            expired = [
                caller_id
                for caller_id, session in self._sessions.items()
                if self._is_idle(session, now)
            ]
            for caller_id in expired:
                del self._sessions[caller_id]

        for caller_id in expired:
            logger.info(f"Evicted idle conversation: {caller_id}")
        return expired

    async def run_sweeper(self, interval_seconds: float = 60) -> None:
        """Call sweep() every interval until cancelled."""
        logger.info(
            f"Session sweeper started: interval={interval_seconds}s, "
            f"idle_timeout={self.idle_timeout_seconds}s"
        )
        try:
            while True:
                await asyncio.sleep(interval_seconds)
                self.sweep()
        except asyncio.CancelledError:
            logger.info("Session sweeper stopped")
            raise
