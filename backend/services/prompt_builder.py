"""Prompt construction for the rubber duck debugging assistant."""
from typing import Sequence

from models.conversation import ConversationTurn

SYSTEM_PROMPT = (
    "You are a senior software engineer acting as a rubber duck debugger.\n"
    "Do not provide immediate solutions. First, reflect the user's explanation,\n"
    "highlight contradictions, and suggest a structured debugging path.\n"
    "Keep responses clear, concise, and spoken naturally."
)


def construct_prompt(current_input: str, history: Sequence[ConversationTurn] = ()) -> str:
    """
    Build the full prompt from the persona, prior turns and the new utterance.

    Every turn in ``history`` is rendered in the order given; capping the
    history is the session store's job.

    Args:
        current_input: What the user just said
        history: Previous turns, oldest first

    Returns:
        Prompt ending with an open "Assistant:" cue
    """
    parts = [SYSTEM_PROMPT, "\n\n"]

    if history:
        parts.append("Previous conversation:\n")
        for turn in history:
            parts.append(f"User: {turn.input}\n")
            parts.append(f"Assistant: {turn.output}\n\n")

    parts.append(f"User: {current_input}\n")
    parts.append("Assistant:")

    return "".join(parts)
