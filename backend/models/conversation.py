"""Conversation data models."""
from dataclasses import dataclass, field, replace
from typing import List


@dataclass(frozen=True)
class ConversationTurn:
    """One exchange: what the user said and what the assistant replied."""
    input: str
    output: str
    timestamp: int  # milliseconds since epoch


@dataclass
class Session:
    """Per-user conversation state, owned by a session store."""
    user_id: str
    created_at: int
    last_accessed_at: int
    conversation: List[ConversationTurn] = field(default_factory=list)

    def snapshot(self) -> "Session":
        """Return a detached copy; turns are immutable so a shallow list copy suffices."""
        return replace(self, conversation=list(self.conversation))
