"""In-memory conversation sessions keyed by caller."""
import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, List, Optional

from community_search.config import PipelineConfig
from community_search.extraction.interfaces import ContextProvider
from community_search.models.entities import ConversationSession, ConversationTurn
from community_search.utils.logging import get_logger

logger = get_logger(__name__)


def system_clock_ms() -> int:
    return int(time.time() * 1000)


def relative_time(elapsed_ms: int) -> str:
    minutes = max(0, elapsed_ms) // 60_000
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"
    hours = minutes // 60
    return f"{hours} hour{'s' if hours != 1 else ''} ago"


class SessionStore(ContextProvider):
    """
    Short-lived per-caller history.

    Sessions are created on the first recorded turn and kept for
    session_ttl_minutes of inactivity. Each caller has its own asyncio.Lock, so
    unrelated callers never wait on each other. A lock lives only while some
    coroutine holds or awaits it, or while its caller has a stored session;
    reads for unknown callers never allocate one. Callers only ever receive
    copies of the stored turns.
    """

    def __init__(self, config: PipelineConfig, clock: Optional[Callable[[], int]] = None):
        self.config = config
        self.clock = clock or system_clock_ms
        self._sessions: Dict[str, ConversationSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _caller_lock(self, caller_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(caller_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[caller_id] = lock
        self._lock_users[caller_id] = self._lock_users.get(caller_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[caller_id] - 1
            if remaining:
                self._lock_users[caller_id] = remaining
            else:
                del self._lock_users[caller_id]
                if caller_id not in self._sessions:
                    self._locks.pop(caller_id, None)

    def _is_expired(self, session: ConversationSession, now_ms: int) -> bool:
        return now_ms - session.last_activity_ms > self.config.session_ttl_ms

    def _live_session(self, caller_id: str, now_ms: int) -> Optional[ConversationSession]:
        session = self._sessions.get(caller_id)
        if session is None or self._is_expired(session, now_ms):
            return None
        return session

    async def record(self, caller_id: str, turn: ConversationTurn) -> None:
        """Append a turn, keeping only the most recent max_history_entries."""
        async with self._caller_lock(caller_id):
            now_ms = self.clock()
            session = self._live_session(caller_id, now_ms)
            if session is None:
                session = ConversationSession(session_key=caller_id, last_activity_ms=now_ms)
                self._sessions[caller_id] = session
                logger.debug("Conversation session created", extra={"caller_id": caller_id})

            session.history.append(turn)
            if len(session.history) > self.config.max_history_entries:
                del session.history[: len(session.history) - self.config.max_history_entries]
            session.last_activity_ms = now_ms

    async def history_for(self, caller_id: str) -> List[ConversationTurn]:
        if caller_id not in self._sessions:
            return []
        async with self._caller_lock(caller_id):
            session = self._live_session(caller_id, self.clock())
            return list(session.history) if session else []

    async def context_for(self, caller_id: str, max_turns: Optional[int] = None) -> str:
        if caller_id not in self._sessions:
            return ""
        async with self._caller_lock(caller_id):
            now_ms = self.clock()
            session = self._live_session(caller_id, now_ms)
            if session is None or not session.history:
                return ""
            turns = list(session.history)
        if max_turns:
            turns = turns[-max_turns:]

        lines = ["Previous conversation:"]
        for index, turn in enumerate(turns, start=1):
            lines.append(
                f'{index}. "{turn.query_text}" '
                f"({relative_time(now_ms - turn.timestamp_ms)}, {turn.result_count} results)"
            )
        return "\n".join(lines)

    def sweep(self, now_ms: Optional[int] = None) -> int:
        """Drop sessions idle longer than the TTL. Returns how many were removed."""
        now_ms = self.clock() if now_ms is None else now_ms
        expired = [key for key, session in self._sessions.items() if self._is_expired(session, now_ms)]
        for key in expired:
            del self._sessions[key]
        # Locks in use are released by their holders
        idle_locks = [key for key in self._locks if key not in self._sessions and key not in self._lock_users]
        for key in idle_locks:
            del self._locks[key]
        if expired:
            logger.info(
                f"Swept {len(expired)} expired conversation sessions",
                extra={"expired": len(expired), "active": len(self._sessions)}
            )
        return len(expired)

    async def run_sweeper(self, interval_seconds: Optional[float] = None) -> None:
        """Background loop; cancel the task to stop it."""
        interval = interval_seconds or self.config.session_sweep_interval_minutes * 60
        logger.info(f"Session sweeper started (every {interval}s)")
        try:
            while True:
                await asyncio.sleep(interval)
                self.sweep()
        except asyncio.CancelledError:
            logger.info("Session sweeper stopped")
            raise

    def active_session_count(self) -> int:
        now_ms = self.clock()
        return sum(1 for session in self._sessions.values() if not self._is_expired(session, now_ms))

    def lock_count(self) -> int:
        return len(self._locks)
