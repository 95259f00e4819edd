"""Session store persisted in Supabase PostgreSQL."""
import logging
from typing import Any, Dict, List, Optional
from supabase import create_client, Client

from models.conversation import ConversationTurn, Session
from services.errors import PersistenceFailure
from services.session_store import SessionStore, Clock
from config import SUPABASE_URL, SUPABASE_KEY, SESSION_TIMEOUT, MAX_TURNS

logger = logging.getLogger(__name__)


class SupabaseSessionStore(SessionStore):
    """
    Session store backed by two Supabase tables.

    ``voice_sessions`` holds one row per user (user_id, created_at,
    last_accessed_at) and ``voice_turns`` holds the exchanges (id, user_id,
    input, output, timestamp). Inserting the turn row is the only write that
    commits an exchange; trimming old rows afterwards is best-effort because
    reads never return more than ``max_turns`` turns.
    """

    SESSIONS_TABLE = "voice_sessions"
    TURNS_TABLE = "voice_turns"
    blocking_io = True

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        session_timeout_ms: int = SESSION_TIMEOUT,
        max_turns: int = MAX_TURNS,
        clock: Optional[Clock] = None,
        client: Optional[Client] = None
    ):
        """
        Initialize the store with a Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            session_timeout_ms: Idle time after which sweep evicts a session
            max_turns: Number of most recent turns kept per user
            clock: Millisecond clock, defaults to wall time
            client: Pre-built client (takes precedence over url/key)

        Raises:
            ValueError: If no client is given and credentials are missing
        """
        super().__init__(session_timeout_ms, max_turns, clock)

        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")
            client = create_client(supabase_url, supabase_key)

        self.client: Client = client
        logger.info("SupabaseSessionStore initialized")

    def get(self, user_id: str) -> Session:
        """
        Get the user's session, creating the row on first access.

        Read failures are logged and yield an empty session rather than
        failing the request.
        """
        now = self.clock()

        try:
            result = self.client.table(self.SESSIONS_TABLE).select("*").eq("user_id", user_id).execute()

            if result.data:
                self.client.table(self.SESSIONS_TABLE).update(
                    {"last_accessed_at": now}
                ).eq("user_id", user_id).execute()

                row = result.data[0]
                turns = self._get_turns(user_id)
                logger.debug(f"Retrieved session for user {user_id} with {len(turns)} turns")
                return Session(
                    user_id=user_id,
                    created_at=self._created_at(row, now),
                    last_accessed_at=now,
                    conversation=turns
                )

            self.client.table(self.SESSIONS_TABLE).upsert({
                "user_id": user_id,
                "created_at": now,
                "last_accessed_at": now
            }, on_conflict="user_id", ignore_duplicates=True).execute()
            logger.info(f"Created session for user {user_id}")
        except Exception as e:
            logger.error(f"Error retrieving session for user {user_id}: {e}")

        return Session(user_id=user_id, created_at=now, last_accessed_at=now)

    def append(self, user_id: str, input: str, output: str) -> None:
        """
        Add an exchange to the user's history.

        Raises:
            PersistenceFailure: If the turn could not be written
        """
        now = self.clock()

        try:
            self._touch(user_id, now)

            timestamp = max(now, self._latest_timestamp(user_id))
            self.client.table(self.TURNS_TABLE).insert({
                "user_id": user_id,
                "input": input,
                "output": output,
                "timestamp": timestamp
            }).execute()
        except Exception as e:
            logger.error(f"Error adding turn for user {user_id}: {e}")
            raise PersistenceFailure("Failed to save conversation turn") from e

        logger.info(f"Added turn for user {user_id}")
        self._trim(user_id)

    def sweep(self) -> int:
        cutoff = self.clock() - self.session_timeout_ms

        result = self.client.table(self.SESSIONS_TABLE).select("user_id").lt(
            "last_accessed_at", cutoff
        ).execute()
        expired = [row["user_id"] for row in (result.data or [])]
        if not expired:
            return 0

        self.client.table(self.TURNS_TABLE).delete().in_("user_id", expired).execute()
        self.client.table(self.SESSIONS_TABLE).delete().in_("user_id", expired).execute()

        logger.info(f"Swept {len(expired)} idle sessions")
        return len(expired)

    def clear(self) -> None:
        # PostgREST refuses unfiltered deletes
        self.client.table(self.TURNS_TABLE).delete().neq("user_id", "").execute()
        self.client.table(self.SESSIONS_TABLE).delete().neq("user_id", "").execute()
        logger.warning("Cleared all sessions")

    def session_count(self) -> int:
        result = self.client.table(self.SESSIONS_TABLE).select("user_id", count="exact").execute()
        return result.count or 0

    def _touch(self, user_id: str, now: int) -> None:
        """Refresh the session row, creating it with ``created_at`` if missing."""
        updated = self.client.table(self.SESSIONS_TABLE).update(
            {"last_accessed_at": now}
        ).eq("user_id", user_id).execute()
        if updated.data:
            return

        # Keeps an existing row untouched if another request created it first
        self.client.table(self.SESSIONS_TABLE).upsert({
            "user_id": user_id,
            "created_at": now,
            "last_accessed_at": now
        }, on_conflict="user_id", ignore_duplicates=True).execute()

    def _latest_timestamp(self, user_id: str) -> int:
        result = (
            self.client.table(self.TURNS_TABLE)
            .select("timestamp")
            .eq("user_id", user_id)
            .order("id", desc=True)
            .limit(1)
            .execute()
        )
        if result.data:
            return int(result.data[0]["timestamp"])
        return 0

    @staticmethod
    def _created_at(row: Dict[str, Any], default: int) -> int:
        value = row.get("created_at")
        return int(value) if value is not None else default

    def _get_turns(self, user_id: str) -> List[ConversationTurn]:
        """
        Retrieve the most recent ``max_turns`` turns in chronological order.

        Args:
            user_id: Owner of the turns

        Returns:
            List of ConversationTurn objects, oldest first
        """
        result = (
            self.client.table(self.TURNS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("id", desc=True)
            .limit(self.max_turns)
            .execute()
        )
        rows: List[Dict[str, Any]] = list(reversed(result.data or []))

        return [
            ConversationTurn(
                input=row["input"],
                output=row["output"],
                timestamp=int(row["timestamp"])
            )
            for row in rows
        ]

    def _trim(self, user_id: str) -> None:
        """Delete turns older than the most recent ``max_turns``."""
        try:
            result = (
                self.client.table(self.TURNS_TABLE)
                .select("id")
                .eq("user_id", user_id)
                .order("id", desc=True)
                .range(self.max_turns, self.max_turns + 999)
                .execute()
            )
            stale_ids = [row["id"] for row in (result.data or [])]
            if stale_ids:
                self.client.table(self.TURNS_TABLE).delete().in_("id", stale_ids).execute()
                logger.debug(f"Trimmed {len(stale_ids)} old turns for user {user_id}")
        except Exception as e:
            logger.warning(f"Failed to trim turns for user {user_id}: {e}")
