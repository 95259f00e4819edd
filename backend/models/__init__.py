"""Data models for the Rubber Duck voice debugger."""
from .conversation import ConversationTurn, Session
from .api import VoiceRequest, VoiceResponse, ErrorResponse, HealthResponse

__all__ = [
    "ConversationTurn",
    "Session",
    "VoiceRequest",
    "VoiceResponse",
    "ErrorResponse",
    "HealthResponse",
]
