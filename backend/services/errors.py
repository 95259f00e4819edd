"""Pipeline error taxonomy.

Every failure that can leave the voice pipeline is a ``PipelineError`` carrying
an ``ErrorKind``; the response shaper turns the kind into a status code.
"""
from enum import Enum


class ErrorKind(str, Enum):
    """External error names, as they appear in the ``error`` field."""
    VALIDATION = "ValidationError"
    TIMEOUT = "TimeoutError"
    UPSTREAM = "ServiceUnavailable"
    INTERNAL = "InternalServerError"


TRANSCRIPTION_FAILED_MESSAGE = "I couldn't hear that clearly. Please try again."
VALIDATION_MESSAGE = "Both audio and userId are required"


class PipelineError(Exception):
    """Base class for failures surfaced to the caller."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(PipelineError):
    """Request is missing a required field or carries an unusable payload."""
    kind = ErrorKind.VALIDATION

    def __init__(self, message: str = VALIDATION_MESSAGE):
        super().__init__(message)


class TranscriptionFailure(PipelineError):
    """Both transcription attempts failed."""
    kind = ErrorKind.UPSTREAM

    def __init__(self, message: str = TRANSCRIPTION_FAILED_MESSAGE):
        super().__init__(message)


class TimeoutFailure(TranscriptionFailure):
    """Both transcription attempts exceeded the per-attempt timeout."""
    kind = ErrorKind.TIMEOUT


class PersistenceFailure(PipelineError):
    """The session store could not record the completed turn."""
    kind = ErrorKind.INTERNAL


class ReasoningFailure(Exception):
    """Both reasoning attempts failed. Masked by the fallback reply, never surfaced."""
