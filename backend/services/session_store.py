"""Per-user bounded conversation history with idle expiry."""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from models.conversation import ConversationTurn, Session
from config import SESSION_TIMEOUT, MAX_TURNS, SWEEP_INTERVAL

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def now_ms() -> int:
    """Current wall clock time in milliseconds since epoch."""
    return int(time.time() * 1000)


class SessionStore(ABC):
    """
    Interface shared by session backends.

    Sessions are created lazily, capped at ``max_turns`` turns (oldest dropped
    first) and evicted by ``sweep`` once idle for longer than
    ``session_timeout_ms``. Callers only ever receive snapshots.

    Backends that do network I/O set ``blocking_io`` so async callers run
    them in a worker thread (see ``run_store_call``).
    """

    blocking_io = False

    def __init__(
        self,
        session_timeout_ms: int = SESSION_TIMEOUT,
        max_turns: int = MAX_TURNS,
        clock: Optional[Clock] = None
    ):
        if session_timeout_ms <= 0:
            raise ValueError("session_timeout_ms must be positive")
        if max_turns <= 0:
            raise ValueError("max_turns must be positive")

        self.session_timeout_ms = session_timeout_ms
        self.max_turns = max_turns
        self.clock: Clock = clock or now_ms

    @abstractmethod
    def get(self, user_id: str) -> Session:
        """Return the user's session, creating an empty one if needed."""
        raise NotImplementedError

    @abstractmethod
    def append(self, user_id: str, input: str, output: str) -> None:
        """Record one completed exchange for the user."""
        raise NotImplementedError

    @abstractmethod
    def sweep(self) -> int:
        """Evict idle sessions and return how many were removed."""
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        """Drop every session."""
        raise NotImplementedError

    @abstractmethod
    def session_count(self) -> int:
        """Number of live sessions."""
        raise NotImplementedError

    def is_expired(self, session: Session, now: int) -> bool:
        return now - session.last_accessed_at > self.session_timeout_ms


async def run_store_call(store: Any, method: Callable[..., Any], *args: Any) -> Any:
    """
    Call a store method from async code.

    Backends flagged with ``blocking_io`` run in a worker thread so their
    network round-trips do not stall the event loop; in-process stores are
    called inline.
    """
    if isinstance(store, SessionStore) and store.blocking_io:
        return await asyncio.to_thread(method, *args)
    return method(*args)


class InMemorySessionStore(SessionStore):
    """Session store backed by a process-local dict. Lost on restart."""

    def __init__(
        self,
        session_timeout_ms: int = SESSION_TIMEOUT,
        max_turns: int = MAX_TURNS,
        clock: Optional[Clock] = None
    ):
        super().__init__(session_timeout_ms, max_turns, clock)
        self._sessions: Dict[str, Session] = {}
        logger.info(
            f"InMemorySessionStore initialized (timeout={session_timeout_ms}ms, max_turns={max_turns})"
        )

    def _get_or_create(self, user_id: str) -> Session:
        now = self.clock()
        session = self._sessions.get(user_id)
        if session is None:
            session = Session(user_id=user_id, created_at=now, last_accessed_at=now)
            self._sessions[user_id] = session
            logger.debug(f"Created session for user {user_id}")
        else:
            session.last_accessed_at = now
        return session

    def get(self, user_id: str) -> Session:
        return self._get_or_create(user_id).snapshot()

    def append(self, user_id: str, input: str, output: str) -> None:
        session = self._get_or_create(user_id)

        timestamp = self.clock()
        if session.conversation:
            timestamp = max(timestamp, session.conversation[-1].timestamp)

        turns: List[ConversationTurn] = session.conversation + [
            ConversationTurn(input=input, output=output, timestamp=timestamp)
        ]
        # Single assignment so readers never observe a half-trimmed list
        session.conversation = turns[-self.max_turns:]
        session.last_accessed_at = self.clock()

        logger.debug(f"Appended turn for user {user_id} ({len(session.conversation)} turns)")

    def sweep(self) -> int:
        now = self.clock()
        expired = [
            user_id for user_id, session in list(self._sessions.items())
            if self.is_expired(session, now)
        ]
        for user_id in expired:
            self._sessions.pop(user_id, None)

        if expired:
            logger.info(f"Swept {len(expired)} idle sessions, {len(self._sessions)} remain")
        return len(expired)

    def clear(self) -> None:
        self._sessions.clear()

    def session_count(self) -> int:
        return len(self._sessions)


class SessionSweeper:
    """Background task that calls ``store.sweep()`` on a fixed interval."""

    def __init__(self, store: SessionStore, interval_ms: int = SWEEP_INTERVAL):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.store = store
        self.interval_ms = interval_ms
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start sweeping on the running event loop. Idempotent."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Session sweeper started (every {self.interval_ms}ms)")

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Session sweeper stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_ms / 1000)
            try:
                await run_store_call(self.store, self.store.sweep)
            except Exception as e:
                logger.error(f"Session sweep failed: {e}", exc_info=True)
