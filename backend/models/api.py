"""Request and response models for the HTTP API."""
from typing import Optional
from pydantic import BaseModel, ConfigDict


class VoiceRequest(BaseModel):
    """Body of POST /debug/voice.

    Both fields are optional at the schema level; presence is checked by the
    pipeline so that a missing field yields the ValidationError shape.
    """
    audio: Optional[str] = None  # base64, optionally a data: URL
    userId: Optional[str] = None


class VoiceResponse(BaseModel):
    """Successful voice debugging response."""
    model_config = ConfigDict(extra="forbid")

    textResponse: str
    audioUrl: str  # data:audio/mpeg;base64,... or empty string


class ErrorResponse(BaseModel):
    """Error body shared by every failure path."""
    model_config = ConfigDict(extra="forbid")

    error: str
    message: str
    statusCode: int


class HealthResponse(BaseModel):
    """Health check payload."""
    status: str
    timestamp: str
    uptime: float
